"""
Categorization - provider-backed classification with a local rule engine.

Primary path: batches of uncategorized candidates go to the provider chain
with the closed category vocabulary. A batch whose response fails parsing
or validation falls back to the rule engine as a whole.

Fallback path: CategoryMapper, a deterministic keyword table. Its output
always carries confidence Config.RULE_CONFIDENCE (70).
"""
import json
import logging
from typing import Any, Dict, List, Optional

from .config import Config
from .errors import ProviderChainExhausted
from .providers import ProviderChain, parse_json_object
from .schema import (
    CATEGORY_NAMES, Category, CandidateTransaction, Direction, INCOME_CATEGORIES,
    Transaction,
)


# ─────────────────────────────────────────────────────────────
# Category Rules Configuration
# ─────────────────────────────────────────────────────────────
# Rules are applied in order; first match wins.

CATEGORY_RULES = {
    Category.FOOD_AND_DINING: [
        "food", "restaurant", "grocery", "dining", "cafe", "pizza", "burger",
        "coffee", "lunch", "dinner", "swiggy", "zomato", "ubereats"
    ],
    Category.TRANSPORTATION: [
        "uber", "taxi", "gas", "fuel", "metro", "bus", "train", "flight",
        "parking", "toll", "ride", "transport"
    ],
    Category.BILLS_AND_UTILITIES: [
        "utilities", "electricity", "water", "gas bill", "internet", "cable",
        "phone", "bill", "utility"
    ],
    Category.ENTERTAINMENT: [
        "movie", "cinema", "netflix", "spotify", "gym", "fitness", "game",
        "concert", "theater", "entertainment"
    ],
    Category.SHOPPING: [
        "amazon", "store", "shop", "mall", "clothing", "shoes", "electronics",
        "book", "purchase"
    ],
    Category.HEALTHCARE: [
        "doctor", "hospital", "pharmacy", "medical", "dental", "clinic",
        "medicine", "health"
    ],
    Category.EDUCATION: [
        "school", "university", "course", "book", "tuition", "education",
        "learning", "coursera", "udemy"
    ],
    Category.TRAVEL: ["hotel", "flight", "vacation", "trip", "travel", "booking"],
    Category.GROCERIES: ["grocery", "supermarket", "vegetables", "fruits", "milk", "bread"],
    Category.GAS: ["gas", "fuel", "petrol", "diesel", "gas station"],
    Category.RENT: ["rent", "rental", "apartment", "house"],
    Category.INSURANCE: ["insurance", "premium", "policy"],
    Category.SALARY: ["salary", "wage", "payroll", "income", "bonus", "commission"],
    Category.INVESTMENTS: ["investment", "stock", "bond", "mutual fund", "savings", "deposit"],
    Category.OTHER_INCOME: ["opening balance", "refund", "cashback", "interest", "dividend", "reversal"],
}

DEFAULT_CATEGORY = Category.OTHER_EXPENSE


class CategoryMapper:
    """
    Deterministic transaction categorizer using keyword matching.

    Usage:
        mapper = CategoryMapper()
        category = mapper.categorize("Swiggy order #123")
        # Returns: Category.FOOD_AND_DINING
    """

    def __init__(self, custom_rules: Optional[dict] = None):
        self.rules = custom_rules if custom_rules else CATEGORY_RULES

    def categorize(self, description: str) -> Category:
        if not description:
            return DEFAULT_CATEGORY

        desc_lower = description.lower()

        for category, keywords in self.rules.items():
            for keyword in keywords:
                if keyword in desc_lower:
                    return category

        return DEFAULT_CATEGORY

    def get_rules(self) -> dict:
        """Return current categorization rules for transparency/audit."""
        return {c.value: list(kws) for c, kws in self.rules.items()}


CATEGORIZATION_INSTRUCTIONS = f"""You are a financial AI assistant. Analyze the following transaction data and categorize each transaction properly.

For each transaction, in the SAME ORDER as given, provide:
- description: Clean, readable description
- amount: Numeric amount (positive for income, negative for expenses)
- category: One of these categories: {", ".join(CATEGORY_NAMES)}
- merchant: Store/company name if available, otherwise null
- type: "income" or "expense"
- confidence: Confidence score 0-100 (integer)

Respond with ONLY a valid JSON object in this exact format (no markdown, no code blocks, just pure JSON):
{{
  "transactions": [
    {{"description": "string", "amount": number, "category": "string", "merchant": "string or null", "type": "income or expense", "confidence": number}}
  ]
}}

Transaction data:"""


def _clamp_confidence(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(0, min(100, int(round(value))))


def resolve_direction(tx: CandidateTransaction, category: Category) -> Direction:
    """
    Direction decided by the extraction strategy wins; the category only
    decides for raw amounts that carry no direction (tabular convention:
    negative is expense, positive is income only for income categories).
    """
    declared = tx.get("direction")
    if declared in (Direction.INCOME.value, Direction.EXPENSE.value):
        return Direction(declared)
    if tx["amount"] < 0:
        return Direction.EXPENSE
    if category in INCOME_CATEGORIES:
        return Direction.INCOME
    return Direction.EXPENSE


def finalize(tx: CandidateTransaction, category: Category, direction: Direction,
             confidence: int, merchant: Optional[str] = None) -> Transaction:
    magnitude = abs(tx["amount"])
    return {
        "date": tx["date"],
        "description": tx["description"],
        "amount": magnitude if direction == Direction.INCOME else -magnitude,
        "direction": Direction(direction).value,
        "category": category.value,
        "confidence": confidence,
        "source": tx.get("source"),
        "merchant": merchant,
        "flags": list(tx.get("flags") or []),
    }


class Categorizer:
    def __init__(self, provider_chain: Optional[ProviderChain] = None,
                 mapper: Optional[CategoryMapper] = None,
                 batch_size: Optional[int] = None):
        self.provider_chain = provider_chain
        self.mapper = mapper or CategoryMapper()
        self.batch_size = batch_size or Config.CATEGORIZE_BATCH_SIZE
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {"pre_categorized": 0, "service": 0, "rule_engine": 0, "skipped": 0}

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()

    # ─── Rule Engine ───

    def apply_rules(self, tx: CandidateTransaction) -> Transaction:
        category = self.mapper.categorize(tx.get("description", ""))
        return finalize(tx, category, resolve_direction(tx, category), Config.RULE_CONFIDENCE)

    # ─── Provider Path ───

    @staticmethod
    def _batch_text(batch: List[CandidateTransaction]) -> str:
        lines = []
        for i, tx in enumerate(batch, 1):
            payload = {"date": tx["date"], "description": tx["description"],
                       "amount": tx["amount"], "type": tx.get("direction")}
            lines.append(f"{i}. {json.dumps(payload)}")
        return "\n".join(lines)

    @staticmethod
    def _merge_service_item(tx: CandidateTransaction, item: Any) -> Transaction:
        if not isinstance(item, dict):
            raise ValueError("transaction entry is not an object")

        category = Category.parse(item.get("category"))
        if category is None:
            raise ValueError(f"category outside vocabulary: {item.get('category')!r}")

        kind = str(item.get("type") or item.get("direction") or "").strip().lower()
        if kind not in (Direction.INCOME.value, Direction.EXPENSE.value):
            raise ValueError(f"invalid type: {kind!r}")

        merchant = item.get("merchant")
        merchant = str(merchant).strip() if merchant not in (None, "", "null") else None
        confidence = _clamp_confidence(item.get("confidence"), Config.SERVICE_CONFIDENCE)
        direction = resolve_direction({**tx, "direction": tx.get("direction") or kind}, category)
        return finalize(tx, category, direction, confidence, merchant)

    def _parse_batch_response(self, raw: str, batch: List[CandidateTransaction]) -> List[Transaction]:
        data = parse_json_object(raw)
        items = data.get("transactions")
        if not isinstance(items, list):
            raise ValueError("response has no 'transactions' array")
        if len(items) != len(batch):
            raise ValueError(f"expected {len(batch)} transactions, got {len(items)}")
        return [self._merge_service_item(tx, item) for tx, item in zip(batch, items)]

    def _categorize_batch(self, batch: List[CandidateTransaction]) -> List[Transaction]:
        if self.provider_chain is not None and self.provider_chain.providers:
            try:
                results = self.provider_chain.request(
                    CATEGORIZATION_INSTRUCTIONS,
                    self._batch_text(batch),
                    lambda raw: self._parse_batch_response(raw, batch),
                )
                self.stats["service"] += len(results)
                return results
            except ProviderChainExhausted as e:
                logging.warning(f"Categorization service unavailable, using rule engine: {e}")

        self.stats["rule_engine"] += len(batch)
        return [self.apply_rules(tx) for tx in batch]

    # ─── Entry Point ───

    def categorize(self, candidates: List[CandidateTransaction]) -> List[Transaction]:
        """
        Assign category, direction and confidence to deduplicated candidates.

        Candidates that already carry a vocabulary category and a direction
        (provider-assisted extraction) pass through unchanged in order.
        """
        self.stats = self._empty_stats()
        results: List[Optional[Transaction]] = [None] * len(candidates)
        pending = []

        for idx, tx in enumerate(candidates):
            if not tx.get("amount"):
                logging.debug(f"Skipping zero-amount record: {tx!r}")
                self.stats["skipped"] += 1
                continue
            category = Category.parse(tx.get("category"))
            if category is not None and tx.get("direction") in (Direction.INCOME.value, Direction.EXPENSE.value):
                results[idx] = finalize(tx, category, Direction(tx["direction"]), Config.SERVICE_CONFIDENCE)
                self.stats["pre_categorized"] += 1
            else:
                pending.append(idx)

        for start in range(0, len(pending), self.batch_size):
            indices = pending[start:start + self.batch_size]
            batch = [candidates[i] for i in indices]
            for i, tx in zip(indices, self._categorize_batch(batch)):
                results[i] = tx

        return [tx for tx in results if tx is not None]
