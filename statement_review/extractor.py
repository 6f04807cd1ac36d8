from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from statement_review.coercers import to_text
from statement_review.mapper import LinkBuilder, map_row
from statement_review.records import KYMRecord, MPRecord, Record
from statement_review.schema import ColumnSchema, Layout


@dataclass
class ExtractionResult:
    mp: list[MPRecord] = field(default_factory=list)
    kym: list[KYMRecord] = field(default_factory=list)
    rows_total: int = 0
    rows_skipped: int = 0


def is_case_row(row: Optional[Sequence[object]]) -> bool:
    """A data row counts only when it has cells and a case id in the first one."""
    return bool(row) and to_text(row[0]) != ""


def data_rows(rows: Iterable[Sequence[object]]) -> list[Sequence[object]]:
    """Drop the header row unconditionally, then every row without a case id."""
    materialised = list(rows)
    if len(materialised) < 2:
        return []
    return [row for row in materialised[1:] if is_case_row(row)]


def extract(
    rows: Iterable[Sequence[object]],
    schema: ColumnSchema,
    *,
    link_builder: Optional[LinkBuilder] = None,
) -> list[Record]:
    return [map_row(row, schema, link_builder=link_builder) for row in data_rows(rows)]


def extract_layout(
    rows: Iterable[Sequence[object]],
    layout: Layout,
    *,
    link_builder: Optional[LinkBuilder] = None,
) -> ExtractionResult:
    materialised = list(rows)
    body_count = max(len(materialised) - 1, 0)
    qualifying = data_rows(materialised)
    return ExtractionResult(
        mp=[map_row(row, layout.mp, link_builder=link_builder) for row in qualifying],
        kym=[map_row(row, layout.kym, link_builder=link_builder) for row in qualifying],
        rows_total=body_count,
        rows_skipped=body_count - len(qualifying),
    )
