"""
Transaction Schema - Typed records shared by every extraction stage.

Records travel between stages as plain dicts typed with TypedDict, so they
serialize straight to JSON for the HTTP layer. Closed vocabularies are
str-valued Enums: a member compares equal to its string value.
"""
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TypedDict, Dict, Any, Optional, List


class Direction(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class ConfidenceSource(str, Enum):
    """Which extraction strategy produced a record"""
    STRUCTURED = "structured"     # header-anchored column split
    SERVICE = "service"           # provider-assisted table extraction
    REGEX = "regex"               # date-anchored segmentation / line patterns


class Category(str, Enum):
    """Closed category vocabulary used by both the provider and rule-engine paths"""
    FOOD_AND_DINING = "Food & Dining"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    BILLS_AND_UTILITIES = "Bills & Utilities"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    TRAVEL = "Travel"
    GROCERIES = "Groceries"
    GAS = "Gas"
    RENT = "Rent"
    INSURANCE = "Insurance"
    SALARY = "Salary"
    INVESTMENTS = "Investments"
    OTHER_INCOME = "Other Income"
    OTHER_EXPENSE = "Other Expense"

    @classmethod
    def parse(cls, value: Any) -> Optional["Category"]:
        """Case-insensitive lookup; None when the value is outside the vocabulary."""
        if value is None:
            return None
        needle = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == needle:
                return member
        return None


CATEGORY_NAMES = [c.value for c in Category]
INCOME_CATEGORIES = {Category.SALARY, Category.INVESTMENTS, Category.OTHER_INCOME}

# Record flags
FLAG_DUAL_INTERPRETATION = "DUAL_INTERPRETATION"
FLAG_OPENING_BALANCE = "OPENING_BALANCE"


# ─────────────────────────────────────────────────────────────
# Documents
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RawDocument:
    """Uploaded bytes plus declared media type. Discarded after extraction."""
    content: bytes
    media_type: str
    filename: Optional[str] = None


_WS_RUN = re.compile(r'[ \t\r\f\v\u00a0]+')


@dataclass
class TextStream:
    """Extracted text, page -> line, with no column structure"""
    pages: List[List[str]] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str) -> "TextStream":
        return cls(pages=[text.splitlines()])

    @property
    def lines(self) -> List[str]:
        out = []
        for page in self.pages:
            for line in page:
                clean = _WS_RUN.sub(' ', line or '').strip()
                if clean:
                    out.append(clean)
        return out

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def lower(self) -> str:
        return self.text.lower()

    def is_empty(self) -> bool:
        return not self.lines


@dataclass
class LogicalTable:
    """Header plus row strings; rows are not split into columns"""
    header: str
    rows: List[str]

    def render(self, rows: Optional[List[str]] = None) -> str:
        rows = self.rows if rows is None else rows
        parts = [f"| {self.header} |", "| --- |"]
        parts.extend(f"| {row} |" for row in rows)
        return "\n".join(parts)


class LayoutKind(str, Enum):
    BANK_TABLE = "bank_table"
    GENERIC_HEADER = "generic_header"
    UNSTRUCTURED = "unstructured"


@dataclass(frozen=True)
class Layout:
    kind: LayoutKind
    header: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────

class CandidateTransaction(TypedDict, total=False):
    """Extracted but not yet deduplicated/categorized record"""
    date: str                     # source format, not normalized
    description: str
    amount: float                 # signed: negative iff expense
    direction: str                # Direction value
    category: Optional[str]       # Category value when the strategy supplied one
    source: str                   # ConfidenceSource value
    flags: List[str]
    balance: Optional[float]      # running balance when the row showed one


class Transaction(TypedDict, total=False):
    """Final output record"""
    date: str
    description: str
    amount: float
    direction: str
    category: str
    confidence: int               # 0-100
    source: str
    merchant: Optional[str]
    flags: List[str]


class Summary(TypedDict):
    total_income: float
    total_expenses: float
    savings: float
    savings_rate: float
    health_score: int
    transaction_count: int
    category_breakdown: List[Dict[str, Any]]


class PipelineResult(TypedDict):
    success: bool
    transactions: List[Transaction]
    summary: Summary
    stats: Dict[str, Any]


def parse_amount(val: Any) -> Optional[float]:
    """Parse '1,234.50', '$12.00', '(45.00)', '-3.2' or a number; None when unparseable."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return round(float(val), 2) if math.isfinite(val) else None
    val_str = str(val).strip()
    negative = val_str.startswith('(') and val_str.endswith(')')
    val_str = re.sub(r'[$₹€£,()\s]', '', val_str)
    try:
        amount = float(val_str)
    except ValueError:
        return None
    if not math.isfinite(amount):
        return None
    return round(-abs(amount) if negative else amount, 2)


def make_candidate(date: str, description: str, amount: float, direction: Direction,
                   source: ConfidenceSource, category: Optional[str] = None,
                   flags: Optional[List[str]] = None,
                   balance: Optional[float] = None) -> CandidateTransaction:
    """Build a candidate whose amount sign agrees with its direction."""
    magnitude = round(abs(float(amount)), 2)
    signed = magnitude if direction == Direction.INCOME else -magnitude
    return {
        "date": date.strip(),
        "description": " ".join(description.split()),
        "amount": signed,
        "direction": Direction(direction).value,
        "category": category,
        "source": ConfidenceSource(source).value,
        "flags": list(flags or []),
        "balance": balance,
    }


def to_storage_record(tx: Transaction) -> Dict[str, Any]:
    """Shape consumed by the persistence layer: absolute amount plus type."""
    return {
        "date": tx["date"],
        "description": tx["description"],
        "amount": abs(tx["amount"]),
        "category": tx["category"],
        "merchant": tx.get("merchant"),
        "type": tx["direction"],
        "confidence": tx["confidence"],
    }
