"""
workbook.py: spreadsheet bytes → rows of plain cell values

Reads .xlsx / .xlsm workbooks with openpyxl (read-only, cached formula
values). Every cell is normalised to the Text | Number | Empty domain the
coercers understand:

    None             → None
    str              → str (untouched; coercers trim)
    int / float      → int / float
    bool             → "TRUE" / "FALSE"
    datetime / date  → Excel serial number (1899-12-30 epoch)
    time             → fraction of a day
"""

from __future__ import annotations

import io
from datetime import date, datetime, time
from pathlib import Path
from typing import Optional

from openpyxl import load_workbook
from openpyxl.utils.datetime import to_excel
from openpyxl.workbook.workbook import Workbook

from statement_review.errors import ConfigurationError

WORKBOOK_FORMATS = {".xlsx", ".xlsm"}


def normalise_cell(value: object):
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (datetime, date, time)):
        return to_excel(value)
    return str(value)


def read_workbook(data: bytes) -> Workbook:
    if not data:
        raise ValueError("Could not read workbook: empty file")
    try:
        return load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ValueError(f"Could not read workbook: {exc}") from exc


def load_workbook_file(path: "str | Path") -> Workbook:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in WORKBOOK_FORMATS:
        raise ValueError(
            f"Unsupported format '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(WORKBOOK_FORMATS))}"
        )
    return read_workbook(path.read_bytes())


def sheet_names(workbook: Workbook) -> list[str]:
    return list(workbook.sheetnames)


def sheet_rows(workbook: Workbook, sheet_name: Optional[str] = None) -> list[list]:
    """Rows of the named sheet (first sheet when no name is given)."""
    names = sheet_names(workbook)
    if not names:
        return []
    if sheet_name is None:
        sheet_name = names[0]
    elif sheet_name not in names:
        raise ConfigurationError(f"Sheet '{sheet_name}' not found. Available: {names}")

    # read-only workbooks parse the sheet XML lazily, here
    rows: list[list] = []
    try:
        for values in workbook[sheet_name].iter_rows(values_only=True):
            rows.append([normalise_cell(value) for value in values])
    except Exception as exc:
        raise ValueError(f"Could not read workbook: sheet '{sheet_name}': {exc}") from exc
    return rows
