"""
schema.py: versioned column layouts for review workbooks

A ColumnSchema maps logical field names to zero-based column indices for one
record type. A Layout pairs the MP and KYM schemas that read the same sheet.
The source workbook has drifted through several incompatible layouts, so the
mapper never hard-codes an index: callers pick a built-in layout by name or
load one from a JSON file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from statement_review.errors import SchemaError

RECORD_TYPES = ("mp", "kym")

MCA_FIELDS = (
    "mca_deposit",
    "mca_withdrawals",
    "returned_item",
    "overdrafts",
    "service_charges",
    "atm_cash_withdrawal",
    "internal_transfer_deposit",
    "internal_transfer_withdrawal",
    "other_transfer_deposit",
    "other_transfer_withdrawal",
    "standard_deposit",
    "standard_withdrawal",
)

REQUIRED_FIELDS = {
    "mp": (
        "case_id",
        "doc_id",
        "true_bank_name",
        "statement_month",
        "statement_year",
        "account_holder",
        "predicted_bank_name",
        "statement_period",
        "account_number",
        "total_monthly_deposit",
        "total_monthly_withdrawals",
        "number_of_deposits",
        "number_of_withdrawals",
    ),
    "kym": (
        "case_id",
        "doc_id",
        "validator",
        "act_last_4_digit",
        "monthly_deposit",
        "monthly_number_of_deposits",
    ) + MCA_FIELDS,
}

OPTIONAL_FIELDS = {
    "mp": ("validator",),
    "kym": (
        "funding_transfer_deposits",
        "avg_daily_balance",
        "return_items",
        "return_item_days",
        "overdraft_days",
        "funding_transfer_deposit_amount",
    ),
}


@dataclass(frozen=True)
class ColumnSchema:
    record_type: str
    version: str
    columns: Mapping[str, int]

    def __post_init__(self) -> None:
        if self.record_type not in RECORD_TYPES:
            raise SchemaError(
                f"Unknown record type '{self.record_type}'. Expected one of: {', '.join(RECORD_TYPES)}"
            )
        known = set(REQUIRED_FIELDS[self.record_type]) | set(OPTIONAL_FIELDS[self.record_type])
        missing = [name for name in REQUIRED_FIELDS[self.record_type] if name not in self.columns]
        if missing:
            raise SchemaError(
                f"{self.record_type.upper()} schema '{self.version}' is missing fields: {', '.join(missing)}"
            )
        unknown = sorted(set(self.columns) - known)
        if unknown:
            raise SchemaError(
                f"{self.record_type.upper()} schema '{self.version}' has unknown fields: {', '.join(unknown)}"
            )
        for name, index in self.columns.items():
            if isinstance(index, bool) or not isinstance(index, int) or index < 0:
                raise SchemaError(
                    f"{self.record_type.upper()} schema '{self.version}': "
                    f"column index for '{name}' must be a non-negative integer, got {index!r}"
                )
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    def index_of(self, name: str) -> int | None:
        return self.columns.get(name)

    @property
    def width(self) -> int:
        return max(self.columns.values()) + 1

    def to_dict(self) -> dict[str, int]:
        return dict(sorted(self.columns.items(), key=lambda item: item[1]))


@dataclass(frozen=True)
class Layout:
    name: str
    mp: ColumnSchema
    kym: ColumnSchema
    description: str = field(default="", compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "mp": self.mp.to_dict(),
            "kym": self.kym.to_dict(),
        }


def build_layout(name: str, mp: Mapping[str, int], kym: Mapping[str, int], description: str = "") -> Layout:
    return Layout(
        name=name,
        mp=ColumnSchema("mp", name, mp),
        kym=ColumnSchema("kym", name, kym),
        description=description,
    )


def _mca_columns(start: int) -> dict[str, int]:
    return {name: start + offset for offset, name in enumerate(MCA_FIELDS)}


# ══════════════════════════════════════════════════════════════════════════════
# BUILT-IN LAYOUTS
# ══════════════════════════════════════════════════════════════════════════════

_V1_MP = {
    "case_id": 0,
    "doc_id": 1,
    "validator": 2,
    "true_bank_name": 11,
    "statement_month": 12,
    "statement_year": 13,
    "account_holder": 14,
    "predicted_bank_name": 15,
    "statement_period": 16,
    "account_number": 17,
    "total_monthly_deposit": 18,
    "total_monthly_withdrawals": 19,
    "number_of_deposits": 20,
    "number_of_withdrawals": 21,
}
_V1_KYM = {
    "case_id": 0,
    "doc_id": 1,
    "validator": 2,
    "act_last_4_digit": 3,
    "monthly_deposit": 4,
    "funding_transfer_deposits": 5,
    "avg_daily_balance": 6,
    "return_items": 7,
    "return_item_days": 8,
    "overdraft_days": 9,
    "monthly_number_of_deposits": 10,
    **_mca_columns(22),
}

_V2_MP = {
    "case_id": 0,
    "doc_id": 1,
    "validator": 2,
    "true_bank_name": 6,
    "statement_month": 7,
    "statement_year": 8,
    "account_holder": 9,
    "predicted_bank_name": 10,
    "statement_period": 11,
    "account_number": 12,
    "total_monthly_deposit": 13,
    "total_monthly_withdrawals": 14,
    "number_of_deposits": 15,
    "number_of_withdrawals": 16,
}
_V2_KYM = {
    "case_id": 0,
    "doc_id": 1,
    "validator": 2,
    "act_last_4_digit": 3,
    "monthly_deposit": 4,
    "monthly_number_of_deposits": 5,
    **_mca_columns(17),
}

_V3_MP = {**_V1_MP, "number_of_withdrawals": 22}
_V3_KYM = {**_V1_KYM, "funding_transfer_deposit_amount": 21, **_mca_columns(23)}

BUILTIN_LAYOUTS: dict[str, Layout] = {
    layout.name: layout
    for layout in (
        build_layout(
            "v1",
            _V1_MP,
            _V1_KYM,
            "34 columns: KYM summary 0-10 (5-9 withheld upstream), MP 11-21, MCA details 22-33",
        ),
        build_layout(
            "v2",
            _V2_MP,
            _V2_KYM,
            "29 columns: compact sheet without withheld KYM columns, MP 6-16, MCA details 17-28",
        ),
        build_layout(
            "v3",
            _V3_MP,
            _V3_KYM,
            "35 columns: v1 plus funding transfer deposit ($) at 21, withdrawals count at 22, MCA details 23-34",
        ),
    )
}
DEFAULT_LAYOUT = "v1"


def load_layout_file(path: Path) -> Layout:
    path = Path(path)
    if not path.exists():
        raise SchemaError(f"Layout file not found: {path}")
    if path.suffix.lower() != ".json":
        raise SchemaError("Layout files must be .json")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise SchemaError(f"Could not read layout file: {exc}") from exc
    if not isinstance(payload, dict):
        raise SchemaError("Layout file root must be a JSON object.")
    for key in RECORD_TYPES:
        if not isinstance(payload.get(key), dict):
            raise SchemaError(f"Layout file must contain a '{key}' object mapping field names to column indices")
    return build_layout(
        str(payload.get("name") or path.stem),
        payload["mp"],
        payload["kym"],
        str(payload.get("description") or ""),
    )


def resolve_layout(layout: str | Layout | None = None) -> Layout:
    """Return a Layout from a built-in name, a JSON file path, or a Layout."""
    if isinstance(layout, Layout):
        return layout
    if not layout:
        layout = DEFAULT_LAYOUT
    if layout in BUILTIN_LAYOUTS:
        return BUILTIN_LAYOUTS[layout]
    if layout.lower().endswith(".json"):
        return load_layout_file(Path(layout))
    raise SchemaError(
        f"Unknown column layout '{layout}'. Built-in layouts: {', '.join(sorted(BUILTIN_LAYOUTS))}"
    )
