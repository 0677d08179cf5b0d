"""Regex fallback extractor for French trip queries.

Used when the language model is unavailable or leaves fields empty. Only
returns what it can find; nothing is defaulted here.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Optional

from .domain import ParsedIntent
from .text_normalizer import ACTIVITY_WORDS, FRENCH_MONTHS

_ACTIVITY_RE = re.compile(rf"(?<!\w)({'|'.join(ACTIVITY_WORDS)})", re.IGNORECASE)
_LOCATION_RE = re.compile(
    r"(?<![\w-])(?:à|a)\s+([A-Za-zÀ-ÖØ-öø-ÿ' -]+?)(?:\s+le\b|$)",
    re.IGNORECASE,
)
_DATE_RE = re.compile(
    r"\ble\s*(\d{1,2})(?:er)?\s*([a-zA-Zéèêëàâôûùîïç]+)\s*(\d{4})?",
    re.IGNORECASE,
)


def _resolve_date(day: int, month: int, year: Optional[int], today: dt.date) -> Optional[dt.date]:
    """Build the target date; roll a year-less date that already passed into next year."""
    base_year = year if year and year > 1900 else today.year
    try:
        target = dt.date(base_year, month, day)
    except ValueError:
        return None
    if year is None and target < today:
        try:
            target = target.replace(year=target.year + 1)
        except ValueError:
            # 29 February rolled into a non-leap year
            return None
    return target


def parse_date_fragment(query: str, today: Optional[dt.date] = None) -> Optional[str]:
    """Find "le <jour> <mois> [<année>]" and return it as YYYY-MM-DD."""
    today = today or dt.datetime.now(dt.timezone.utc).date()
    for m in _DATE_RE.finditer(query or ""):
        month = FRENCH_MONTHS.get(m.group(2).lower())
        if month is None:
            continue
        year = int(m.group(3)) if m.group(3) else None
        target = _resolve_date(int(m.group(1)), month, year, today)
        return target.isoformat() if target else None
    return None


def parse_french_fallback(query: str, today: Optional[dt.date] = None) -> ParsedIntent:
    """Extract activity, location and date from a French sentence with regexes only."""
    q = query or ""
    activity_match = _ACTIVITY_RE.search(q)
    location_match = _LOCATION_RE.search(q)

    location = location_match.group(1).strip() if location_match else None
    return ParsedIntent(
        location=location or None,
        date_iso=parse_date_fragment(q, today),
        activity=activity_match.group(1).lower() if activity_match else None,
    )
