"""
Deduplication - first occurrence wins, keyed on the exact
(date, description, amount) triple.

Runs before categorization, so category and confidence never take part
in the key.
"""
from typing import List, Tuple

from .schema import CandidateTransaction


def get_signature(tx: CandidateTransaction) -> Tuple[str, str, float]:
    return (tx["date"], tx["description"], tx["amount"])


def deduplicate(candidates: List[CandidateTransaction]) -> List[CandidateTransaction]:
    seen_sigs: set = set()
    results = []
    for tx in candidates:
        sig = get_signature(tx)
        if sig in seen_sigs:
            continue
        seen_sigs.add(sig)
        results.append(tx)
    return results
