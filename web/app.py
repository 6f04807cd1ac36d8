#!/usr/bin/env python3
from __future__ import annotations

from typing import Optional

import pandas as pd
import streamlit as st

from statement_review.batches import get_batch_info
from statement_review.errors import ConfigurationError
from statement_review.export import kym_frame, mp_frame
from statement_review.records import KYMRecord, MPRecord
from statement_review.schema import BUILTIN_LAYOUTS
from statement_review.service import (
    FATAL_ERRORS,
    ReviewData,
    batches_envelope,
    extract_workbook_bytes,
    layout_from_env,
    load_review_data,
)
from statement_review.storage import StorageSettings, document_link_builder

MP_PRIMARY_COLUMNS = [
    "case_id",
    "doc_link",
    "true_bank_name",
    "statement_month",
    "statement_year",
    "total_monthly_deposit",
    "total_monthly_withdrawals",
    "number_of_deposits",
    "number_of_withdrawals",
]

MCA_LABELS = [
    ("MCA Deposit", "mca_deposit"),
    ("MCA Withdrawals", "mca_withdrawals"),
    ("Returned Item", "returned_item"),
    ("Overdrafts", "overdrafts"),
    ("Service Charges", "service_charges"),
    ("ATM Cash Withdrawal", "atm_cash_withdrawal"),
    ("Internal Transfer Dep", "internal_transfer_deposit"),
    ("Internal Transfer Wth", "internal_transfer_withdrawal"),
    ("Other Transfer Dep", "other_transfer_deposit"),
    ("Other Transfer Wth", "other_transfer_withdrawal"),
    ("Standard Deposit", "standard_deposit"),
    ("Standard Withdrawal", "standard_withdrawal"),
]

CURRENCY_COLUMNS = {
    "total_monthly_deposit",
    "total_monthly_withdrawals",
    "monthly_deposit",
    "funding_transfer_deposits",
    "funding_transfer_deposit_amount",
}


def ensure_state() -> None:
    st.session_state.setdefault("review", None)
    st.session_state.setdefault("error", None)
    st.session_state.setdefault("mp_expanded", False)


def format_currency(value: float) -> str:
    formatted = f"${abs(value):,.2f}"
    return f"-{formatted}" if value < 0 else formatted


def column_config(df: pd.DataFrame) -> dict:
    config = {}
    if "doc_link" in df.columns:
        config["doc_link"] = st.column_config.LinkColumn("Document", display_text="Open")
    for name in CURRENCY_COLUMNS & set(df.columns):
        config[name] = st.column_config.NumberColumn(name.replace("_", " ").title(), format="$%.2f")
    return config


def load_remote(batch: str, layout: Optional[str]) -> None:
    try:
        st.session_state["review"] = load_review_data(batch, layout=layout)
        st.session_state["error"] = None
    except FATAL_ERRORS as exc:
        st.session_state["review"] = None
        st.session_state["error"] = str(exc)


def load_upload(data: bytes, name: str, batch: Optional[str], layout: Optional[str]) -> None:
    try:
        sheet_name = None
        link_builder = None
        if batch:
            info = get_batch_info(batch)
            sheet_name = info.sheet_name
            try:
                link_builder = document_link_builder(StorageSettings.from_env(), info.pdf_path_prefix)
            except ConfigurationError:
                link_builder = None
        st.session_state["review"] = extract_workbook_bytes(
            data,
            sheet_name=sheet_name,
            layout=layout_from_env(layout),
            link_builder=link_builder,
            source=name,
            batch=batch,
        )
        st.session_state["error"] = None
    except FATAL_ERRORS as exc:
        st.session_state["review"] = None
        st.session_state["error"] = str(exc)


def render_error(message: str) -> None:
    st.error(f"Failed to load data\n\n{message}")


def render_empty() -> None:
    st.info("No data available")


def render_mp_table(records: list[MPRecord]) -> None:
    if not records:
        render_empty()
        return
    expanded = st.toggle("Show all MP columns", key="mp_expanded")
    df = mp_frame(records)
    if not expanded:
        df = df[MP_PRIMARY_COLUMNS]
    st.dataframe(df, column_config=column_config(df), hide_index=True, width="stretch")


def render_mca_details(record: KYMRecord) -> None:
    st.markdown(f"**BSI Details**: `{record.case_id}` / `{record.doc_id}`")
    details = record.mca_details.to_dict()
    for start in range(0, len(MCA_LABELS), 3):
        cols = st.columns(3)
        for col, (label, field) in zip(cols, MCA_LABELS[start : start + 3]):
            col.metric(label, format_currency(details[field]))


def render_kym_table(records: list[KYMRecord]) -> None:
    if not records:
        render_empty()
        return
    df = kym_frame(records)
    summary = df[[column for column in df.columns if not column.startswith("mca_details.")]]
    summary = summary.drop(columns=["avg_daily_balance_text"])
    summary["avg_daily_balance"] = summary["avg_daily_balance"].astype(str)
    st.dataframe(summary, column_config=column_config(summary), hide_index=True, width="stretch")

    labels = [f"{record.case_id} • {record.doc_id}" for record in records]
    choice = st.selectbox("View BSI details for", options=range(len(records)), format_func=lambda i: labels[i])
    if choice is not None:
        with st.container(border=True):
            render_mca_details(records[choice])


def render_summary(review: ReviewData) -> None:
    metrics = st.columns(4)
    metrics[0].metric("MP records", len(review.mp))
    metrics[1].metric("KYM records", len(review.kym))
    metrics[2].metric("Sheet", review.sheet_name or "-")
    metrics[3].metric("Layout", review.layout.name)
    st.caption(f"Source: {review.source or '-'}  •  Rows skipped without case id: {review.rows_skipped}")
    if review.warnings:
        st.warning(" | ".join(review.warnings))


def set_visuals() -> None:
    st.set_page_config(page_title="statement-review", page_icon="📑", layout="wide", initial_sidebar_state="expanded")


def main() -> None:
    set_visuals()
    ensure_state()

    st.title("statement-review")
    st.caption("MP and KYM views of the statement review workbook.")

    batches = batches_envelope()
    with st.sidebar:
        if not batches["success"]:
            st.error(batches["error"])
        batch = st.selectbox("Batch", options=batches["batches"], index=0 if batches["batches"] else None)
        layout_names = sorted(BUILTIN_LAYOUTS)
        layout = st.selectbox("Column layout", options=["(environment)"] + layout_names)
        layout = None if layout == "(environment)" else layout
        if st.button("Load from storage", type="primary", width="stretch", disabled=not batch):
            load_remote(batch, layout)
        upload = st.file_uploader("Or upload a workbook", type=["xlsx", "xlsm"])
        if upload is not None and st.button("Extract upload", width="stretch"):
            load_upload(upload.getvalue(), upload.name, batch, layout)

    if st.session_state["error"]:
        render_error(st.session_state["error"])
        return

    review: Optional[ReviewData] = st.session_state["review"]
    if review is None:
        st.info("Pick a batch and load the workbook to see the MP and KYM tables.")
        return

    render_summary(review)
    mp_tab, kym_tab = st.tabs(["MP", "KYM"])
    with mp_tab:
        render_mp_table(review.mp)
    with kym_tab:
        render_kym_table(review.kym)


if __name__ == "__main__":
    main()
