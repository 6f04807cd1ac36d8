"""
coercers.py: cell-level coercion for human-entered review sheets

Every coercer takes one raw cell value and never raises. Unrecognised input
degrades to a typed default ('' or 0).

Cells are first classified into a closed variant:
    TextCell: non-blank text (trimmed)
    NumberCell: int / float (bool and NaN excluded)
    EmptyCell: None or blank text
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Union

EXCEL_EPOCH = datetime(1899, 12, 30)
NOT_PROVIDED = "Not Provided by Merchant Pulse"

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

DIRECT_YEAR_RANGE = (1900, 2100)
SERIAL_DATE_FLOOR = 30_000

_STRIP_RE = re.compile(r"[,\s$€£¥₹]")
_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_ACCOUNTING_NEGATIVE_RE = re.compile(r"^\((.+)\)$")
_BARE_YEAR_RE = re.compile(r"^\d{4}$")
_YEAR_TOKEN_RE = re.compile(r"(?<!\d)(20\d{2})(?!\d)")
_SHORT_YEAR_RE = re.compile(r"[-/](\d{2})$")


# ══════════════════════════════════════════════════════════════════════════════
# CELL VARIANT
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TextCell:
    text: str


@dataclass(frozen=True)
class NumberCell:
    number: float


@dataclass(frozen=True)
class EmptyCell:
    pass


Cell = Union[TextCell, NumberCell, EmptyCell]
EMPTY = EmptyCell()


def classify_cell(value: object) -> Cell:
    if value is None:
        return EMPTY
    if isinstance(value, (TextCell, NumberCell, EmptyCell)):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and math.isnan(value):
            return EMPTY
        return NumberCell(value)
    text = str(value).strip()
    if not text:
        return EMPTY
    return TextCell(text)


# ══════════════════════════════════════════════════════════════════════════════
# TEXT / NUMBERS
# ══════════════════════════════════════════════════════════════════════════════

def _number_display(number: float) -> str:
    if isinstance(number, float) and number.is_integer() and math.isfinite(number):
        return str(int(number))
    return str(number)


def to_text(value: object) -> str:
    cell = classify_cell(value)
    if isinstance(cell, TextCell):
        return cell.text
    if isinstance(cell, NumberCell):
        return _number_display(cell.number)
    return ""


def _parse_stripped(text: str) -> float | None:
    if not _NUMERIC_RE.match(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def to_number(value: object) -> float:
    cell = classify_cell(value)
    if isinstance(cell, NumberCell):
        return cell.number
    if isinstance(cell, TextCell):
        parsed = _parse_stripped(_STRIP_RE.sub("", cell.text))
        if parsed is not None:
            return parsed
    return 0


def parse_currency(value: object) -> float | None:
    """Parse a currency cell; accounting negatives like (123.45) become -123.45."""
    cell = classify_cell(value)
    if isinstance(cell, NumberCell):
        return cell.number
    if not isinstance(cell, TextCell):
        return None
    cleaned = _STRIP_RE.sub("", cell.text)
    m = _ACCOUNTING_NEGATIVE_RE.match(cleaned)
    if m:
        cleaned = "-" + m.group(1)
    return _parse_stripped(cleaned)


def to_currency(value: object) -> float:
    parsed = parse_currency(value)
    return 0 if parsed is None else parsed


def to_count(value: object) -> int:
    number = to_number(value)
    if not math.isfinite(number) or number <= 0:
        return 0
    return int(math.floor(number))


# ══════════════════════════════════════════════════════════════════════════════
# SERIAL DATES
# ══════════════════════════════════════════════════════════════════════════════

def serial_to_datetime(serial: float) -> datetime | None:
    try:
        return EXCEL_EPOCH + timedelta(days=serial)
    except (OverflowError, ValueError):
        return None


def serial_date_to_month_name(value: object) -> str:
    cell = classify_cell(value)
    if isinstance(cell, TextCell):
        return cell.text
    if isinstance(cell, NumberCell):
        dt = serial_to_datetime(cell.number)
        return MONTH_NAMES[dt.month - 1] if dt else ""
    return ""


def serial_date_to_year(value: object) -> str:
    cell = classify_cell(value)
    if isinstance(cell, TextCell):
        text = cell.text
        if _BARE_YEAR_RE.match(text):
            return text
        m = _YEAR_TOKEN_RE.search(text)
        if m:
            return m.group(1)
        m = _SHORT_YEAR_RE.search(text)
        if m:
            return "20" + m.group(1)
        return text
    if isinstance(cell, NumberCell):
        number = cell.number
        if not math.isfinite(number):
            return ""
        low, high = DIRECT_YEAR_RANGE
        if low <= number <= high:
            return str(int(math.floor(number)))
        if number > SERIAL_DATE_FLOOR:
            dt = serial_to_datetime(number)
            if dt:
                return str(dt.year)
        return str(int(math.floor(number)))
    return ""
