"""
Transform Layer - Extraction Strategy Chain.

Three strategies, tried strictly in order; the first that yields at least
one candidate for the whole document wins and results are never combined:

1. structured: header-anchored column split (generic date/description/amount header)
2. service: provider-assisted extraction over the reconstructed bank table
3. regex: date-anchored segmentation, plus generic line patterns for
   unstructured free text

Each strategy is a plain function of an ExtractionContext returning a list
of candidates, or None when it does not apply or finds nothing.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .assisted import ServiceAssistedExtractor, is_opening_balance
from .schema import (
    CandidateTransaction, ConfidenceSource, Direction, FLAG_DUAL_INTERPRETATION,
    FLAG_OPENING_BALANCE, Layout, LayoutKind, LogicalTable, TextStream,
    make_candidate, parse_amount,
)
from .table import classify_layout, count_column_keywords, has_column_markers, reconstruct_table


DATE = r'\d{1,2}[/-]\d{1,2}[/-]\d{2,4}'
AMT = r'[-+]?\$?\d[\d,]*\.\d{2}'

DATE_RE = re.compile(rf'(?<![\d/-]){DATE}(?![\d/-])')
LINE_DATE_RE = re.compile(rf'^({DATE})(?![\d/-])')
NUMBER_RE = re.compile(r'(?<![\w.])-?\d[\d,]*\.\d{1,2}(?![\d.])')
AMOUNT_TOKEN_RE = re.compile(r'[-+]?[$₹]?\(?\d[\d,]*\.\d+\)?')

# Direction keyword rules, first matching group wins
DIRECTION_RULES = [
    (Direction.INCOME, ["opening balance", "salary", "refund", "interest", "cashback", "reversal", "dividend"]),
    (Direction.EXPENSE, ["debit", "transfer", "payment", "atm", "pos", "card", "withdrawal", "purchase", "fee", "charge"]),
    (Direction.INCOME, ["credit", "deposit"]),
]

# Descriptions that are column names, not merchants
HEADER_WORDS = {"date", "description", "details", "narration", "amount", "balance",
                "debit", "credit", "withdrawal", "deposit", "particulars", "total"}

BALANCE_TOLERANCE = 0.01


@dataclass
class ExtractionContext:
    stream: TextStream
    layout: Layout
    table: Optional[LogicalTable] = None


@dataclass
class ChainResult:
    strategy: Optional[str]
    candidates: List[CandidateTransaction]
    attempts: List[Tuple[str, int]] = field(default_factory=list)


Strategy = Callable[[ExtractionContext], Optional[List[CandidateTransaction]]]


# ─────────────────────────────────────────────────────────────
# Shared Helpers
# ─────────────────────────────────────────────────────────────

def infer_direction(text: str) -> Optional[Direction]:
    lower = text.lower()
    for direction, keywords in DIRECTION_RULES:
        for kw in keywords:
            if re.search(rf'\b{re.escape(kw)}s?\b', lower):
                return direction
    return None


def clean_description(text: str) -> str:
    text = DATE_RE.sub(' ', text)
    text = text.replace('|', ' ')
    return ' '.join(text.split()).strip(' -:')


# ─────────────────────────────────────────────────────────────
# State A: Structured Header Parse
# ─────────────────────────────────────────────────────────────

def parse_structured_line(line: str) -> Optional[CandidateTransaction]:
    """'<date> <description...> <amount> [income|expense]' -> candidate, or None to skip."""
    m = LINE_DATE_RE.match(line)
    if not m:
        return None

    tokens = line[m.end():].split()
    amount_idx = next((i for i, tok in enumerate(tokens) if AMOUNT_TOKEN_RE.fullmatch(tok)), None)
    if amount_idx is None:
        return None

    description = " ".join(tokens[:amount_idx])
    amount = parse_amount(tokens[amount_idx])
    if not description or not amount:
        return None

    trailing = tokens[-1].lower() if amount_idx < len(tokens) - 1 else ""
    direction = Direction.INCOME if trailing == "income" else Direction.EXPENSE

    return make_candidate(m.group(1), description, amount, direction, ConfidenceSource.STRUCTURED)


def structured_header_parse(ctx: ExtractionContext) -> Optional[List[CandidateTransaction]]:
    if ctx.layout.kind != LayoutKind.GENERIC_HEADER:
        return None

    lines = ctx.stream.lines
    start = lines.index(ctx.layout.header) + 1
    results = []
    for line in lines[start:]:
        tx = parse_structured_line(line)
        if tx is None:
            logging.debug(f"Structured parse skipped line: {line!r}")
            continue
        results.append(tx)
    return results or None


# ─────────────────────────────────────────────────────────────
# State C: Date-Anchored Segmentation
# ─────────────────────────────────────────────────────────────

@dataclass
class SegmentContext:
    column_markers: bool          # document has withdrawal/deposit columns
    balance_column: bool          # the bank header carries a balance column
    previous_balance: Optional[float] = None


def find_anchor_dates(text: str) -> List[re.Match]:
    """
    Dates that start a transaction window.

    A second date on the same line, reached before any amount (value date),
    belongs to the current row instead of opening a new one.
    """
    anchors = []
    for m in DATE_RE.finditer(text):
        if anchors:
            between = text[anchors[-1].end():m.start()]
            if "\n" not in between and not NUMBER_RE.search(between):
                continue
        anchors.append(m)
    return anchors


def _trim_window(body: str) -> str:
    """Keep lines up to and including the first one that carries an amount."""
    kept = []
    for line in body.split("\n"):
        kept.append(line)
        if NUMBER_RE.search(line):
            break
    return "\n".join(kept)


def _resolve_single_amount(amount: float, balance: Optional[float], seg: SegmentContext,
                           description: str) -> Direction:
    if is_opening_balance(description):
        return Direction.INCOME
    prev = seg.previous_balance
    if prev is not None and balance is not None:
        if abs(prev - amount - balance) <= BALANCE_TOLERANCE:
            return Direction.EXPENSE
        if abs(prev + amount - balance) <= BALANCE_TOLERANCE:
            return Direction.INCOME
    # Single value in a withdrawal/deposit layout reads as the first (withdrawal) column
    return infer_direction(description) or Direction.EXPENSE


def parse_window(date: str, body: str, seg: SegmentContext) -> List[CandidateTransaction]:
    window = _trim_window(body)
    if count_column_keywords(window) >= 2:
        logging.debug(f"Skipping header-like window at {date}")
        return []

    numbers = list(NUMBER_RE.finditer(window))
    if not numbers:
        return []

    description = clean_description(window[:numbers[0].start()])
    if not description:
        return []

    values = [abs(parse_amount(m.group()) or 0.0) for m in numbers]
    flags = [FLAG_OPENING_BALANCE] if is_opening_balance(description) else []

    def candidate(amount, direction, extra_flags=(), balance=None):
        return make_candidate(date, description, amount, direction, ConfidenceSource.REGEX,
                              flags=flags + list(extra_flags), balance=balance)

    results = []
    if seg.column_markers or has_column_markers(window):
        balance = None
        amounts = values
        if seg.balance_column and len(values) >= 2:
            balance, amounts = values[-1], values[:-1]

        if len(amounts) >= 2:
            withdrawal, deposit = amounts[0], amounts[1]
            if withdrawal:
                results.append(candidate(withdrawal, Direction.EXPENSE, balance=balance))
            if deposit:
                results.append(candidate(deposit, Direction.INCOME, balance=balance))
        elif amounts[0]:
            direction = _resolve_single_amount(amounts[0], balance, seg, description)
            results.append(candidate(amounts[0], direction, balance=balance))

        if balance is not None:
            seg.previous_balance = balance
        return results

    direction = infer_direction(description)
    if direction is not None:
        if values[0]:
            results.append(candidate(values[0], direction))
    elif len(values) >= 2:
        # Debit and credit columns cannot be told apart: keep both, flagged
        if values[0]:
            results.append(candidate(values[0], Direction.EXPENSE, [FLAG_DUAL_INTERPRETATION]))
        if values[1]:
            results.append(candidate(values[1], Direction.INCOME, [FLAG_DUAL_INTERPRETATION]))
    elif values[0]:
        results.append(candidate(values[0], Direction.EXPENSE))
    return results


def _has_balance_column(ctx: ExtractionContext) -> bool:
    if ctx.layout.header:
        return "balance" in ctx.layout.header.lower()
    return any("balance" in line.lower() and count_column_keywords(line) >= 2
               for line in ctx.stream.lines)


def segment_by_dates(ctx: ExtractionContext) -> List[CandidateTransaction]:
    text = ctx.stream.text
    seg = SegmentContext(
        column_markers=ctx.layout.kind == LayoutKind.BANK_TABLE or has_column_markers(text),
        balance_column=_has_balance_column(ctx),
    )
    anchors = find_anchor_dates(text)
    results = []
    for i, m in enumerate(anchors):
        end = anchors[i + 1].start() if i + 1 < len(anchors) else len(text)
        results.extend(parse_window(m.group(0), text[m.end():end], seg))
    return results


# Generic free-text line patterns, most specific first
LINE_PATTERNS = [
    ("date_date_desc_amount", re.compile(rf'^({DATE})\s+({DATE})\s+(.+?)\s+({AMT})$')),
    ("date_desc_debit_credit", re.compile(rf'^({DATE})\s+(.+?)\s+({AMT})\s+({AMT})$')),
    ("date_desc_amount", re.compile(rf'^({DATE})\s+(.+?)\s+({AMT})$')),
    ("desc_date_amount", re.compile(rf'^(.+?)\s+({DATE})\s+({AMT})$')),
    ("amount_date_desc", re.compile(rf'^({AMT})\s+({DATE})\s+(.+)$')),
]


def _match_line(line: str) -> Optional[Tuple[str, str, float]]:
    for name, pattern in LINE_PATTERNS:
        m = pattern.match(line)
        if not m:
            continue
        if name == "date_date_desc_amount":
            date, desc, amount = m.group(1), m.group(3), parse_amount(m.group(4))
        elif name == "date_desc_debit_credit":
            debit = abs(parse_amount(m.group(3)) or 0.0)
            credit = abs(parse_amount(m.group(4)) or 0.0)
            date, desc = m.group(1), m.group(2)
            amount = credit if credit > 0 else -debit
        elif name == "date_desc_amount":
            date, desc, amount = m.group(1), m.group(2), parse_amount(m.group(3))
        elif name == "desc_date_amount":
            desc, date, amount = m.group(1), m.group(2), parse_amount(m.group(3))
        else:
            amount, date, desc = parse_amount(m.group(1)), m.group(2), m.group(3)
        return date, desc, amount
    return None


def parse_generic_lines(ctx: ExtractionContext) -> List[CandidateTransaction]:
    results = []
    for line in ctx.stream.lines:
        matched = _match_line(line)
        if matched is None:
            continue
        date, desc, amount = matched
        desc = clean_description(desc)
        if len(desc) < 3 or desc.lower() in HEADER_WORDS or not amount:
            logging.debug(f"Line pattern rejected: {line!r}")
            continue
        direction = Direction.EXPENSE if amount < 0 else Direction.INCOME
        results.append(make_candidate(date, desc, amount, direction, ConfidenceSource.REGEX))
    return results


def regex_parse(ctx: ExtractionContext) -> Optional[List[CandidateTransaction]]:
    results = segment_by_dates(ctx)
    if not results and ctx.layout.kind != LayoutKind.BANK_TABLE:
        results = parse_generic_lines(ctx)
    return results or None


# ─────────────────────────────────────────────────────────────
# Chain Driver
# ─────────────────────────────────────────────────────────────

class ExtractionChain:
    """
    Ordered fallback over extraction strategies.

    Usage:
        chain = ExtractionChain(ServiceAssistedExtractor(ProviderChain.from_config()))
        result = chain.extract(stream)
    """

    def __init__(self, service_extractor: Optional[ServiceAssistedExtractor] = None):
        self.service_extractor = service_extractor
        self.strategies: List[Tuple[str, Strategy]] = [
            (ConfidenceSource.STRUCTURED.value, structured_header_parse),
            (ConfidenceSource.SERVICE.value, self._service_parse),
            (ConfidenceSource.REGEX.value, regex_parse),
        ]

    def _service_parse(self, ctx: ExtractionContext) -> Optional[List[CandidateTransaction]]:
        if self.service_extractor is None:
            return None
        return self.service_extractor.extract(ctx.table)

    def build_context(self, stream: TextStream) -> ExtractionContext:
        layout = classify_layout(stream)
        table = reconstruct_table(stream) if layout.kind == LayoutKind.BANK_TABLE else None
        logging.info(f"Layout: {layout.kind.value}, table rows: {len(table.rows) if table else 0}")
        return ExtractionContext(stream=stream, layout=layout, table=table)

    def extract(self, stream: TextStream) -> ChainResult:
        return self.run(self.build_context(stream))

    def run(self, ctx: ExtractionContext) -> ChainResult:
        attempts = []
        for name, strategy in self.strategies:
            candidates = strategy(ctx)
            attempts.append((name, len(candidates) if candidates else 0))
            if candidates:
                logging.info(f"Strategy '{name}' produced {len(candidates)} candidates")
                return ChainResult(strategy=name, candidates=candidates, attempts=attempts)
            logging.info(f"Strategy '{name}' produced nothing, falling through")

        logging.warning("All extraction strategies exhausted without results")
        return ChainResult(strategy=None, candidates=[], attempts=attempts)
