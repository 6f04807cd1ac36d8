"""
mapper.py: one worksheet row + one column schema → one record

Business fallbacks applied on top of the coercers:
  - sentinel suppression: "Not Provided by Merchant Pulse" reads as an empty cell
  - bank name: true name falls back to the predicted name and vice versa
  - statement month/year: missing direct cells are filled from the statement period
  - document link: derived from doc_id through the caller's link builder
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from statement_review.coercers import (
    EMPTY,
    NOT_PROVIDED,
    Cell,
    EmptyCell,
    NumberCell,
    TextCell,
    classify_cell,
    parse_currency,
    serial_date_to_month_name,
    serial_date_to_year,
    to_count,
    to_currency,
    to_text,
)
from statement_review.period import infer_month_year
from statement_review.records import BalanceValue, KYMRecord, MCADetails, MPRecord, Record
from statement_review.schema import MCA_FIELDS, ColumnSchema

LinkBuilder = Callable[[str], str]


class RowReader:
    """Positional access to one raw row through a column schema."""

    def __init__(self, row: Sequence[object], schema: ColumnSchema) -> None:
        self.row = row
        self.schema = schema

    def cell(self, name: str) -> Cell:
        index = self.schema.index_of(name)
        if index is None or index >= len(self.row):
            return EMPTY
        cell = classify_cell(self.row[index])
        if isinstance(cell, TextCell) and cell.text == NOT_PROVIDED:
            return EMPTY
        return cell

    def text(self, name: str) -> str:
        return to_text(self.cell(name))

    def currency(self, name: str) -> float:
        return to_currency(self.cell(name))

    def count(self, name: str) -> int:
        return to_count(self.cell(name))


def _doc_link(doc_id: str, link_builder: Optional[LinkBuilder]) -> Optional[str]:
    if not doc_id or link_builder is None:
        return None
    return link_builder(doc_id)


def resolve_statement_date(month_cell, year_cell, statement_period: str) -> tuple[str, str]:
    month = serial_date_to_month_name(month_cell)
    year = serial_date_to_year(year_cell)
    if not month or not year:
        guess = infer_month_year(statement_period)
        month = month or guess.month
        year = year or guess.year
    return month, year


def map_mp_row(row: Sequence[object], schema: ColumnSchema, *, link_builder: Optional[LinkBuilder] = None) -> MPRecord:
    reader = RowReader(row, schema)
    statement_period = reader.text("statement_period")
    true_bank_name = reader.text("true_bank_name")
    predicted_bank_name = reader.text("predicted_bank_name")
    bank_name = true_bank_name or predicted_bank_name
    month, year = resolve_statement_date(
        reader.cell("statement_month"),
        reader.cell("statement_year"),
        statement_period,
    )
    doc_id = reader.text("doc_id")

    return MPRecord(
        case_id=reader.text("case_id"),
        doc_id=doc_id,
        doc_link=_doc_link(doc_id, link_builder),
        validator=reader.text("validator"),
        true_bank_name=bank_name,
        statement_month=month,
        statement_year=year,
        account_holder=reader.text("account_holder"),
        predicted_bank_name=predicted_bank_name or bank_name,
        statement_period=statement_period,
        account_number=reader.text("account_number"),
        total_monthly_deposit=reader.currency("total_monthly_deposit"),
        total_monthly_withdrawals=reader.currency("total_monthly_withdrawals"),
        number_of_deposits=reader.count("number_of_deposits"),
        number_of_withdrawals=reader.count("number_of_withdrawals"),
    )


def _last_four(cell) -> str:
    # numeric cells lose leading zeros ("0123" → 123)
    if isinstance(cell, NumberCell) and 0 <= cell.number < 10_000 and float(cell.number).is_integer():
        return str(int(cell.number)).zfill(4)
    return to_text(cell)


def _balance(cell) -> BalanceValue:
    if isinstance(cell, EmptyCell):
        return BalanceValue(amount=0, text="")
    return BalanceValue(amount=parse_currency(cell), text=to_text(cell))


def map_kym_row(row: Sequence[object], schema: ColumnSchema, *, link_builder: Optional[LinkBuilder] = None) -> KYMRecord:
    reader = RowReader(row, schema)
    doc_id = reader.text("doc_id")
    mca_details = MCADetails(**{name: reader.currency(name) for name in MCA_FIELDS})

    return KYMRecord(
        case_id=reader.text("case_id"),
        doc_id=doc_id,
        doc_link=_doc_link(doc_id, link_builder),
        validator=reader.text("validator"),
        act_last_4_digit=_last_four(reader.cell("act_last_4_digit")),
        monthly_deposit=reader.currency("monthly_deposit"),
        funding_transfer_deposits=reader.currency("funding_transfer_deposits"),
        avg_daily_balance=_balance(reader.cell("avg_daily_balance")),
        monthly_number_of_deposits=reader.count("monthly_number_of_deposits"),
        return_items=reader.count("return_items"),
        return_item_days=reader.count("return_item_days"),
        overdraft_days=reader.count("overdraft_days"),
        funding_transfer_deposit_amount=reader.currency("funding_transfer_deposit_amount"),
        mca_details=mca_details,
    )


ROW_MAPPERS = {
    "mp": map_mp_row,
    "kym": map_kym_row,
}


def map_row(row: Sequence[object], schema: ColumnSchema, *, link_builder: Optional[LinkBuilder] = None) -> Record:
    return ROW_MAPPERS[schema.record_type](row, schema, link_builder=link_builder)
