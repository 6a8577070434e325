"""
Table Reconstructor - Layout classification and bank-table re-linearization.

Keyword lists are data so detection stays table-driven. Rows are kept as
whole strings: linearized PDF text loses column alignment, so column
splitting is left to the extraction strategies.
"""
import re
from typing import List, Optional

from .config import Config
from .schema import Layout, LayoutKind, LogicalTable, TextStream


# ─────────────────────────────────────────────────────────────
# Keyword Tables
# ─────────────────────────────────────────────────────────────

# Bank-statement header: all of REQUIRED plus at least one of ANY
BANK_HEADER_REQUIRED = ["date", "narration"]
BANK_HEADER_ANY = ["withdrawal", "deposit"]

# Generic "date ... description ... amount" header
GENERIC_HEADER_REQUIRED = ["date", "description", "amount"]

# Lines that are page furniture, never table rows
FOOTER_KEYWORDS = ["page", "statement"]

# Column names that mark a header line (or a window straddling one)
COLUMN_KEYWORDS = ["date", "narration", "withdrawal", "deposit", "balance"]

# Withdrawal/deposit column markers
COLUMN_MARKERS = ["withdrawal", "deposit"]


def _has_all(text: str, keywords: List[str]) -> bool:
    return all(kw in text for kw in keywords)


def _has_any(text: str, keywords: List[str]) -> bool:
    return any(kw in text for kw in keywords)


def is_bank_statement(stream: TextStream) -> bool:
    lower = stream.lower
    return _has_all(lower, BANK_HEADER_REQUIRED) and _has_any(lower, BANK_HEADER_ANY)


def find_bank_header(lines: List[str]) -> Optional[int]:
    for i, line in enumerate(lines):
        if _has_all(line.lower(), BANK_HEADER_REQUIRED):
            return i
    return None


def find_generic_header(lines: List[str]) -> Optional[int]:
    for i, line in enumerate(lines):
        lower = line.lower()
        if _has_all(lower, GENERIC_HEADER_REQUIRED) and "narration" not in lower:
            return i
    return None


def classify_layout(stream: TextStream) -> Layout:
    """Route a document: bank table, generic header, or unstructured text."""
    lines = stream.lines
    if is_bank_statement(stream):
        idx = find_bank_header(lines)
        if idx is not None:
            return Layout(LayoutKind.BANK_TABLE, lines[idx])

    idx = find_generic_header(lines)
    if idx is not None:
        return Layout(LayoutKind.GENERIC_HEADER, lines[idx])

    return Layout(LayoutKind.UNSTRUCTURED)


def is_footer_line(line: str) -> bool:
    lower = line.lower()
    return any(re.search(rf'\b{kw}\b', lower) for kw in FOOTER_KEYWORDS)


def reconstruct_table(stream: TextStream) -> Optional[LogicalTable]:
    """
    Re-linearize a bank statement into a LogicalTable.

    Returns None when the document has no bank-table header; that is a
    routing decision, not an error.
    """
    if not is_bank_statement(stream):
        return None

    lines = stream.lines
    header_idx = find_bank_header(lines)
    if header_idx is None:
        return None

    header = lines[header_idx]
    rows = []
    for line in lines[header_idx + 1:]:
        # Repeated page headers and footers
        if is_footer_line(line) or count_column_keywords(line) >= 2:
            continue
        if len(line) < Config.MIN_TABLE_ROW_LENGTH:
            continue
        rows.append(line)

    return LogicalTable(header=header, rows=rows)


def count_column_keywords(text: str) -> int:
    """Distinct column names in text, ignoring balance phrases that are row labels."""
    lower = re.sub(r'(opening|closing)\s+balance', ' ', text.lower())
    return sum(1 for kw in COLUMN_KEYWORDS if re.search(rf'\b{kw}', lower))


def has_column_markers(text: str) -> bool:
    return _has_any(text.lower(), COLUMN_MARKERS)
