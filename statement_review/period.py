"""Month / year inference from free-text statement periods."""

from __future__ import annotations

import re
from dataclasses import dataclass

from statement_review.coercers import MONTH_NAMES

MONTH_ABBREVIATIONS = tuple(name[:3] for name in MONTH_NAMES)

_YEAR_RE = re.compile(r"(?<!\d)(20\d{2})(?!\d)")
# Title-case or upper-case only, standing alone: "Nov", "NOV", "Sept" but not "account"
_ABBREVIATION_RE = re.compile(
    r"(?<![A-Za-z])(Sept|SEPT|"
    + "|".join(MONTH_ABBREVIATIONS + tuple(a.upper() for a in MONTH_ABBREVIATIONS))
    + r")(?![A-Za-z])"
)
_SLASH_DATE_RE = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")
_ISO_DATE_RE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
_DASH_DATE_RE = re.compile(r"(?<!\d)(\d{2})-(\d{2})-(\d{4})(?!\d)")


@dataclass(frozen=True)
class PeriodGuess:
    month: str = ""
    year: str = ""


def month_from_number(value: str | int) -> str:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return ""
    if 1 <= number <= 12:
        return MONTH_NAMES[number - 1]
    return ""


def _month_from_full_name(text: str) -> str:
    lowered = text.lower()
    for name in MONTH_NAMES:
        if name.lower() in lowered:
            return name
    return ""


def _month_from_abbreviation(text: str) -> str:
    found = {m.group(1)[:3].lower() for m in _ABBREVIATION_RE.finditer(text)}
    for i, abbreviation in enumerate(MONTH_ABBREVIATIONS):
        if abbreviation.lower() in found:
            return MONTH_NAMES[i]
    return ""


def _month_from_leading_group(pattern: re.Pattern, text: str) -> tuple[str, str]:
    """
    Month from MM?DD?YYYY dates; returns (month, yyyy).

    Month-first is assumed. When any date of the same shape cannot be
    month-first (leading group > 12, middle group a valid month) the whole
    text is read day-first, e.g. "01/08/2025 - 31/08/2025" → August.
    """
    matches = list(pattern.finditer(text))
    if not matches:
        return "", ""
    day_first = any(
        int(m.group(1)) > 12 and 1 <= int(m.group(2)) <= 12 for m in matches
    )
    first = matches[0]
    month_group = first.group(2) if day_first else first.group(1)
    return month_from_number(month_group), first.group(3)


def _month_from_iso(text: str) -> tuple[str, str]:
    m = _ISO_DATE_RE.search(text)
    if not m:
        return "", ""
    return month_from_number(m.group(2)), m.group(1)


def infer_month_year(period_text: str | None) -> PeriodGuess:
    """
    Best-effort month and year from a human-entered period string.

    Strategies, in order, until both fields resolve:
      1. a 20xx year token
      2. full English month name (case-insensitive)
      3. three-letter month abbreviation ("Nov", "NOV"), as a whole word
      4. MM/DD/YYYY
      5. YYYY-MM-DD
      6. MM-DD-YYYY
    Fields that cannot be resolved stay empty.
    """
    text = (period_text or "").strip()
    if not text:
        return PeriodGuess()

    year = ""
    m = _YEAR_RE.search(text)
    if m:
        year = m.group(1)

    month = _month_from_full_name(text) or _month_from_abbreviation(text)

    numeric_strategies = (
        lambda t: _month_from_leading_group(_SLASH_DATE_RE, t),
        _month_from_iso,
        lambda t: _month_from_leading_group(_DASH_DATE_RE, t),
    )
    for strategy in numeric_strategies:
        if month and year:
            break
        found_month, found_year = strategy(text)
        if not month and found_month:
            month = found_month
        if not year and found_year:
            year = found_year

    return PeriodGuess(month=month, year=year)
