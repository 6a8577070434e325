"""
Service-assisted extraction over a reconstructed bank table.

The LogicalTable is sent to the provider chain in row chunks that fit the
prompt budget. Every chunk must be answered for the strategy to succeed;
if any chunk exhausts the providers the whole strategy yields nothing and
the chain falls through to date-anchored segmentation.
"""
import logging
from typing import Any, List, Optional

from .config import Config
from .errors import ProviderChainExhausted
from .providers import ProviderChain, parse_json_array
from .schema import (
    CATEGORY_NAMES, Category, CandidateTransaction, ConfidenceSource, Direction,
    FLAG_OPENING_BALANCE, LogicalTable, make_candidate, parse_amount,
)


EXTRACTION_INSTRUCTIONS = f"""You are a bank statement parser. Extract ALL transactions from the bank statement table below.

The table columns are: Date | Narration | Withdrawal (Debit) | Deposit (Credit) | Balance.

RULES:
1. IGNORE the Balance column completely. It is never a transaction amount.
2. A value in the Withdrawal (Debit) column is an expense: direction "expense", amount NEGATIVE.
3. A value in the Deposit (Credit) column is income: direction "income", amount POSITIVE.
4. If a row has both a withdrawal and a deposit value, return TWO transactions for that row.
5. A row whose narration is "Opening Balance" is ALWAYS income.
6. Keep the date exactly as written in the statement.
7. category must be one of: {", ".join(CATEGORY_NAMES)}

For each transaction return: date, description, amount, direction, category.

Return ONLY a valid JSON array, no markdown, no explanations. Example:
[
  {{"date": "01-03-2024", "description": "UPI/PAYMENT", "amount": -144.00, "direction": "expense", "category": "Other Expense"}}
]"""

REQUIRED_FIELDS = ("date", "description", "amount", "direction", "category")


def is_opening_balance(description: str) -> bool:
    return "opening balance" in (description or "").lower()


def validate_service_record(obj: Any) -> Optional[CandidateTransaction]:
    """Accept a provider object only when every required field is present and usable."""
    if not isinstance(obj, dict):
        return None
    if any(obj.get(f) in (None, "") for f in REQUIRED_FIELDS):
        return None

    amount = parse_amount(obj["amount"])
    if not amount:
        return None

    description = str(obj["description"]).strip()
    direction_str = str(obj["direction"]).strip().lower()
    if is_opening_balance(description):
        direction = Direction.INCOME
    elif direction_str in (Direction.INCOME.value, Direction.EXPENSE.value):
        direction = Direction(direction_str)
    else:
        return None

    # Out-of-vocabulary categories are cleared for the categorizer to decide
    category = Category.parse(obj["category"])
    flags = [FLAG_OPENING_BALANCE] if is_opening_balance(description) else []

    return make_candidate(
        date=str(obj["date"]),
        description=description,
        amount=amount,
        direction=direction,
        source=ConfidenceSource.SERVICE,
        category=category.value if category else None,
        flags=flags,
    )


def parse_service_records(raw: str) -> List[CandidateTransaction]:
    records = []
    for obj in parse_json_array(raw):
        tx = validate_service_record(obj)
        if tx is not None:
            records.append(tx)
        else:
            logging.debug(f"Rejected service record: {obj!r}")
    return records


def chunk_rows(table: LogicalTable, max_chars: int) -> List[List[str]]:
    """Group rows so each rendered chunk stays within max_chars (a lone long row is its own chunk)."""
    budget = max(max_chars - len(table.render([])), 1)
    chunks, current, size = [], [], 0
    for row in table.rows:
        row_size = len(row) + 5
        if current and size + row_size > budget:
            chunks.append(current)
            current, size = [], 0
        current.append(row)
        size += row_size
    if current:
        chunks.append(current)
    return chunks


class ServiceAssistedExtractor:
    def __init__(self, provider_chain: ProviderChain, max_prompt_chars: Optional[int] = None):
        self.provider_chain = provider_chain
        self.max_prompt_chars = max_prompt_chars or Config.MAX_PROMPT_CHARS

    def extract(self, table: Optional[LogicalTable]) -> Optional[List[CandidateTransaction]]:
        if table is None or not table.rows:
            return None
        if not self.provider_chain.providers:
            logging.info("No extraction providers configured")
            return None

        results: List[CandidateTransaction] = []
        chunks = chunk_rows(table, self.max_prompt_chars)
        for i, chunk in enumerate(chunks, 1):
            try:
                records = self.provider_chain.request(
                    EXTRACTION_INSTRUCTIONS, table.render(chunk), parse_service_records
                )
            except ProviderChainExhausted as e:
                logging.warning(f"Service extraction failed on chunk {i}/{len(chunks)}: {e}")
                return None
            results.extend(records)

        return results or None
