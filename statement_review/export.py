from __future__ import annotations

from pathlib import Path
from typing import Sequence

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from statement_review.records import KYMRecord, MPRecord, Record, records_to_dicts
from statement_review.schema import MCA_FIELDS

MP_COLUMNS = [
    "case_id",
    "doc_id",
    "validator",
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
    "doc_link",
]
KYM_COLUMNS = [
    "case_id",
    "doc_id",
    "validator",
    "act_last_4_digit",
    "monthly_deposit",
    "funding_transfer_deposits",
    "avg_daily_balance",
    "avg_daily_balance_text",
    "monthly_number_of_deposits",
    "return_items",
    "return_item_days",
    "overdraft_days",
    "funding_transfer_deposit_amount",
    *[f"mca_details.{name}" for name in MCA_FIELDS],
    "doc_link",
]

MP_HEADER_COLOR = "1F4E78"
KYM_HEADER_COLOR = "375623"


def records_frame(records: Sequence[Record], columns: list[str] | None = None) -> pd.DataFrame:
    """Flatten records into a DataFrame; MCA details become mca_details.* columns."""
    if columns is None:
        columns = KYM_COLUMNS if records and isinstance(records[0], KYMRecord) else MP_COLUMNS
    if not records:
        return pd.DataFrame(columns=columns)
    df = pd.json_normalize(records_to_dicts(records))
    return df.reindex(columns=columns)


def mp_frame(records: Sequence[MPRecord]) -> pd.DataFrame:
    return records_frame(records, MP_COLUMNS)


def kym_frame(records: Sequence[KYMRecord]) -> pd.DataFrame:
    return records_frame(records, KYM_COLUMNS)


def write_csv_outputs(mp: Sequence[MPRecord], kym: Sequence[KYMRecord], out_dir: Path) -> dict[str, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = {"mp": out_dir / "mp.csv", "kym": out_dir / "kym.csv"}
    mp_frame(mp).to_csv(paths["mp"], index=False)
    kym_frame(kym).to_csv(paths["kym"], index=False)
    return paths


def _style_sheet(ws, col_widths: list[int], header_color: str):
    """Apply bold header, color, frozen row, and column widths."""
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(val)) + 2))
    return widths


def _frame_rows(df: pd.DataFrame) -> list[list]:
    header = [str(column) for column in df.columns]
    body = df.astype(object).where(pd.notna(df), None).values.tolist()
    return [header, *body]


def write_review_workbook(mp: Sequence[MPRecord], kym: Sequence[KYMRecord], output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb = openpyxl.Workbook()
    ws_mp = wb.active
    ws_mp.title = "MP"
    ws_kym = wb.create_sheet("KYM")

    for ws, df, color in ((ws_mp, mp_frame(mp), MP_HEADER_COLOR), (ws_kym, kym_frame(kym), KYM_HEADER_COLOR)):
        rows = _frame_rows(df)
        for row in rows:
            ws.append(row)
        _style_sheet(ws, _infer_col_widths(rows), color)

    wb.save(output_path)
    return output_path
