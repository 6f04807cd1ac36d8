"""
service.py: end-to-end fetch → extract → JSON envelope

Envelope shape (what the dashboard and `statement-review fetch --json` emit):

    {
        "mpData":  [MPRecord dicts...],
        "kymData": [KYMRecord dicts...],
        "success": true | false,
        "error":   "message"            # only when success is false
        "batch", "sheet_name", "layout", "contract", "run_summary"
    }

Request-fatal errors (configuration, transport, unreadable workbook) collapse
to empty record lists plus the message, never to a partially filled table.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import requests

from statement_review.batches import available_batches, default_batch, get_batch_info
from statement_review.contracts import build_contract, build_run_summary
from statement_review.errors import ConfigurationError, StatementReviewError
from statement_review.extractor import extract_layout
from statement_review.mapper import LinkBuilder
from statement_review.records import KYMRecord, MPRecord, records_to_dicts
from statement_review.schema import Layout, resolve_layout
from statement_review.storage import StorageSettings, document_link_builder, download_workbook
from statement_review.workbook import read_workbook, sheet_names, sheet_rows

LAYOUT_ENV = "REVIEW_COLUMN_LAYOUT"
FATAL_ERRORS = (StatementReviewError, ValueError, OSError)


@dataclass
class ReviewData:
    mp: list[MPRecord]
    kym: list[KYMRecord]
    layout: Layout
    sheet_name: Optional[str]
    sheet_names: list[str] = field(default_factory=list)
    batch: Optional[str] = None
    source: str = ""
    rows_total: int = 0
    rows_skipped: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def metrics(self) -> dict[str, Any]:
        return {
            "mp_records": len(self.mp),
            "kym_records": len(self.kym),
            "rows_total": self.rows_total,
            "rows_skipped": self.rows_skipped,
            "sheet_count": len(self.sheet_names),
        }


def layout_from_env(layout: "str | Layout | None", environ: Optional[Mapping[str, str]] = None) -> Layout:
    env = os.environ if environ is None else environ
    return resolve_layout(layout or env.get(LAYOUT_ENV) or None)


def extract_workbook_bytes(
    data: bytes,
    *,
    sheet_name: Optional[str] = None,
    layout: "str | Layout | None" = None,
    link_builder: Optional[LinkBuilder] = None,
    source: str = "",
    batch: Optional[str] = None,
) -> ReviewData:
    resolved = resolve_layout(layout)
    workbook = read_workbook(data)
    try:
        names = sheet_names(workbook)
        rows = sheet_rows(workbook, sheet_name)
    finally:
        workbook.close()

    chosen = sheet_name or (names[0] if names else None)
    warnings: list[str] = []
    if not names:
        warnings.append("Workbook has no sheets.")
    elif len(names) > 1:
        others = [name for name in names if name != chosen]
        warnings.append(f"Multiple sheets found ({len(names)} total); used '{chosen}'. Ignored: {others}")

    result = extract_layout(rows, resolved, link_builder=link_builder)
    return ReviewData(
        mp=result.mp,
        kym=result.kym,
        layout=resolved,
        sheet_name=chosen,
        sheet_names=names,
        batch=batch,
        source=source,
        rows_total=result.rows_total,
        rows_skipped=result.rows_skipped,
        warnings=warnings,
    )


def load_review_data(
    batch: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    session: Optional[requests.Session] = None,
    layout: "str | Layout | None" = None,
) -> ReviewData:
    """Download the configured workbook and extract both record sets for one batch."""
    settings = StorageSettings.from_env(environ)
    batch = batch or default_batch(environ)
    if not batch:
        raise ConfigurationError("No batches are configured.")
    info = get_batch_info(batch, environ)
    resolved = layout_from_env(layout, environ)

    data = download_workbook(settings, session=session)
    return extract_workbook_bytes(
        data,
        sheet_name=info.sheet_name,
        layout=resolved,
        link_builder=document_link_builder(settings, info.pdf_path_prefix),
        source=f"{settings.container_name}/{settings.file_name}",
        batch=batch,
    )


def build_envelope(review: ReviewData, *, command: str = "fetch") -> dict[str, Any]:
    return {
        "mpData": records_to_dicts(review.mp),
        "kymData": records_to_dicts(review.kym),
        "success": True,
        "batch": review.batch,
        "sheet_name": review.sheet_name,
        "layout": review.layout.name,
        "contract": build_contract("statement_review.data"),
        "run_summary": build_run_summary(
            command=command,
            source=review.source,
            metrics=review.metrics,
            warnings=review.warnings,
        ),
    }


def error_envelope(message: str, *, command: str = "fetch", source: str = "", batch: Optional[str] = None) -> dict[str, Any]:
    return {
        "mpData": [],
        "kymData": [],
        "success": False,
        "error": message or "Failed to fetch review data",
        "batch": batch,
        "sheet_name": None,
        "layout": None,
        "contract": build_contract("statement_review.data"),
        "run_summary": build_run_summary(command=command, source=source, status="error"),
    }


def fetch_review_data(
    batch: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    session: Optional[requests.Session] = None,
    layout: "str | Layout | None" = None,
) -> dict[str, Any]:
    try:
        review = load_review_data(batch, environ=environ, session=session, layout=layout)
    except FATAL_ERRORS as exc:
        return error_envelope(str(exc), batch=batch)
    return build_envelope(review)


def batches_envelope(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    try:
        batches = available_batches(environ)
    except ConfigurationError as exc:
        return {
            "batches": [],
            "default": "",
            "success": False,
            "error": str(exc),
            "contract": build_contract("statement_review.batches"),
        }
    return {
        "batches": batches,
        "default": batches[0] if batches else "",
        "success": True,
        "contract": build_contract("statement_review.batches"),
    }
