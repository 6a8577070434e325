"""
Tabular Extractor - CSV and spreadsheet uploads.

Rows already have named columns, so this path maps columns by name and
applies a sign convention; it bypasses the strategy chain entirely.
"""
import io
import logging
from typing import Dict, List, Optional

import pandas as pd

from .categorize import CategoryMapper, finalize, resolve_direction
from .config import Config
from .dedupe import get_signature
from .errors import DocumentReadError, UnsupportedFileTypeError
from .schema import (
    Category, ConfidenceSource, RawDocument,
    Transaction, make_candidate, parse_amount,
)


# Header aliases per field, compared lowercase
COLUMN_ALIASES = {
    "date": ["date", "transaction date", "transaction_date", "post date", "posting date", "txn date"],
    "description": ["description", "memo", "details", "narration", "particulars", "payee"],
    "amount": ["amount", "transaction amount", "transaction_amount"],
    "debit": ["debit", "withdrawal", "withdrawal amt", "withdrawal amount"],
    "credit": ["credit", "deposit", "deposit amt", "deposit amount"],
    "category": ["category"],
    "type": ["type", "transaction type", "direction"],
}


# Substring pass order: split debit/credit columns claim "Withdrawal Amount" before "amount" can
SUBSTRING_ORDER = ["date", "description", "debit", "credit", "amount", "category", "type"]


def build_column_map(columns: List[str]) -> Dict[str, str]:
    """Field -> source column; exact alias matches first, then substring matches."""
    normalized = {str(c).strip().lower(): c for c in columns}
    column_map = {}
    for field_name, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in normalized and normalized[alias] not in column_map.values():
                column_map[field_name] = normalized[alias]
                break

    for field_name in SUBSTRING_ORDER:
        if field_name in column_map:
            continue
        for norm, original in normalized.items():
            if original in column_map.values():
                continue
            if any(alias in norm for alias in COLUMN_ALIASES[field_name]):
                column_map[field_name] = original
                break
    return column_map


def _cell(row: pd.Series, column: Optional[str]) -> str:
    if column is None:
        return ""
    value = row.get(column)
    if value is None or (isinstance(value, float) and value != value):
        return ""
    return str(value).strip()


class TabularExtractor:
    def __init__(self, mapper: Optional[CategoryMapper] = None):
        self.mapper = mapper or CategoryMapper()

    def read_frame(self, document: RawDocument) -> pd.DataFrame:
        mt = (document.media_type or "").lower()
        buffer = io.BytesIO(document.content)
        try:
            if mt in Config.CSV_MEDIA_TYPES:
                return pd.read_csv(buffer, dtype=str, keep_default_na=False, skipinitialspace=True)
            elif mt in Config.SPREADSHEET_MEDIA_TYPES:
                return pd.read_excel(buffer, dtype=str, keep_default_na=False)
        except Exception as e:
            raise DocumentReadError(f"Could not read tabular file: {e}") from e
        raise UnsupportedFileTypeError(document.media_type,
                                       Config.CSV_MEDIA_TYPES | Config.SPREADSHEET_MEDIA_TYPES)

    def extract(self, document: RawDocument) -> List[Transaction]:
        df = self.read_frame(document)
        column_map = build_column_map(df.columns.tolist())
        if "date" not in column_map:
            raise DocumentReadError(f"No date column found in: {', '.join(map(str, df.columns))}")
        logging.info(f"Tabular column map: {column_map}")

        results = []
        seen_sigs: set = set()
        for idx, row in df.iterrows():
            tx = self._map_row(row, idx, column_map)
            if tx is None:
                continue
            sig = get_signature(tx)
            if sig in seen_sigs:
                continue
            seen_sigs.add(sig)
            results.append(tx)

        logging.info(f"Tabular extraction: {len(results)} of {len(df)} rows kept")
        return results

    def _row_amount(self, row: pd.Series, column_map: Dict[str, str]) -> Optional[float]:
        if "amount" in column_map:
            return parse_amount(_cell(row, column_map["amount"]))
        debit = abs(parse_amount(_cell(row, column_map.get("debit"))) or 0.0)
        credit = abs(parse_amount(_cell(row, column_map.get("credit"))) or 0.0)
        return credit if credit > 0 else -debit

    def _map_row(self, row: pd.Series, idx: int, column_map: Dict[str, str]) -> Optional[Transaction]:
        date = _cell(row, column_map["date"]).replace(" 00:00:00", "")
        amount = self._row_amount(row, column_map)
        if not date or not amount:
            logging.debug(f"Skipping tabular row {idx}: date={date!r} amount={amount!r}")
            return None

        description = _cell(row, column_map.get("description")) or f"Transaction {idx + 1}"

        declared = Category.parse(_cell(row, column_map.get("category")))
        category = declared or self.mapper.categorize(description)
        confidence = Config.TABULAR_CONFIDENCE if declared else Config.RULE_CONFIDENCE

        # A declared type column wins, otherwise the raw amount sign plus category decide
        kind = _cell(row, column_map.get("type")).lower()
        direction = resolve_direction({"amount": amount, "direction": kind}, category)

        candidate = make_candidate(date, description, amount, direction,
                                   ConfidenceSource.STRUCTURED, category=category.value)
        return finalize(candidate, category, direction, confidence)
