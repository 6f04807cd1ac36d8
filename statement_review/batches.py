"""
batches.py: batch name → worksheet name + document path prefix

Two batches are configured from the environment by default:

    Batch 1   BATCH_1_SHEET_NAME (querry)   BATCH_1_PDF_PATH (29_batch)
    Batch 2   BATCH_2_SHEET_NAME (this)     BATCH_2_PDF_PATH (30_batch)

Set REVIEW_BATCHES_FILE to a JSON object of
    {"Batch 3": {"sheet_name": "...", "pdf_path_prefix": "..."}, ...}
to replace the defaults. `statement-review config init` writes a starter file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from statement_review.errors import ConfigurationError

BATCHES_FILE_ENV = "REVIEW_BATCHES_FILE"

_ENV_BATCHES = (
    ("Batch 1", "BATCH_1_SHEET_NAME", "querry", "BATCH_1_PDF_PATH", "29_batch"),
    ("Batch 2", "BATCH_2_SHEET_NAME", "this", "BATCH_2_PDF_PATH", "30_batch"),
)


@dataclass(frozen=True)
class BatchInfo:
    sheet_name: str
    pdf_path_prefix: str

    def to_dict(self) -> dict[str, str]:
        return {"sheet_name": self.sheet_name, "pdf_path_prefix": self.pdf_path_prefix}


def _env(environ: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def load_batches_file(path: Path) -> dict[str, BatchInfo]:
    if not path.exists():
        raise ConfigurationError(f"Batch file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Could not read batch file: {exc}") from exc
    if not isinstance(payload, dict) or not payload:
        raise ConfigurationError("Batch file root must be a non-empty JSON object.")

    batches: dict[str, BatchInfo] = {}
    for name, entry in payload.items():
        if not isinstance(entry, dict) or not entry.get("sheet_name"):
            raise ConfigurationError(f"Batch '{name}' needs a 'sheet_name'.")
        batches[str(name)] = BatchInfo(
            sheet_name=str(entry["sheet_name"]),
            pdf_path_prefix=str(entry.get("pdf_path_prefix") or ""),
        )
    return batches


def load_batches(environ: Optional[Mapping[str, str]] = None) -> dict[str, BatchInfo]:
    env = _env(environ)
    batches_file = env.get(BATCHES_FILE_ENV)
    if batches_file:
        return load_batches_file(Path(batches_file))
    return {
        name: BatchInfo(
            sheet_name=env.get(sheet_var) or sheet_default,
            pdf_path_prefix=env.get(prefix_var) or prefix_default,
        )
        for name, sheet_var, sheet_default, prefix_var, prefix_default in _ENV_BATCHES
    }


def available_batches(environ: Optional[Mapping[str, str]] = None) -> list[str]:
    return list(load_batches(environ))


def default_batch(environ: Optional[Mapping[str, str]] = None) -> str:
    batches = available_batches(environ)
    return batches[0] if batches else ""


def get_batch_info(batch_name: str, environ: Optional[Mapping[str, str]] = None) -> BatchInfo:
    batches = load_batches(environ)
    if batch_name not in batches:
        raise ConfigurationError(
            f"Unknown batch '{batch_name}'. Available batches: {', '.join(batches) or '[none]'}"
        )
    return batches[batch_name]


def get_sheet_name_for_batch(batch_name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    return get_batch_info(batch_name, environ).sheet_name


def get_pdf_path_prefix_for_batch(batch_name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    return get_batch_info(batch_name, environ).pdf_path_prefix


def starter_batches_payload() -> dict[str, dict[str, str]]:
    payload = {
        name: {"sheet_name": sheet_default, "pdf_path_prefix": prefix_default}
        for name, _, sheet_default, _, prefix_default in _ENV_BATCHES
    }
    payload["Batch 3"] = {"sheet_name": "sheet3", "pdf_path_prefix": "31_batch"}
    return payload
