"""Pure string helpers for dates and place names found in French free text.

Nothing in here raises on bad input: absence (`None`) is the failure signal.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Optional

from dateutil import parser as date_parser

FRENCH_MONTHS: dict[str, int] = {
    "janvier": 1,
    "février": 2,
    "fevrier": 2,
    "mars": 3,
    "avril": 4,
    "mai": 5,
    "juin": 6,
    "juillet": 7,
    "août": 8,
    "aout": 8,
    "septembre": 9,
    "octobre": 10,
    "novembre": 11,
    "décembre": 12,
    "decembre": 12,
}

# Nouns that describe the trip rather than the place.
ACTIVITY_WORDS = ("vacances", "rando", "plage", "mariage", "sport", "extérieur", "exterieur")

_LOCATION_STOPWORDS = frozenset(
    {"le", "la", "les", "à", "a", "en", "au", "aux", "de", "du", "des", *ACTIVITY_WORDS}
)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_ALTERNATION = "|".join(sorted(FRENCH_MONTHS, key=len, reverse=True))
_DATE_FRAGMENT_RE = re.compile(
    rf"(?:\ble\s*)?\b\d{{1,2}}\s*(?:{_MONTH_ALTERNATION})\b(?:\s*\d{{4}})?",
    re.IGNORECASE,
)
_AFTER_PREPOSITION_RE = re.compile(r"(?<![\w-])(?:à|a)\s+([A-Za-zÀ-ÖØ-öø-ÿ' -]+)", re.IGNORECASE)
_LEADING_ACTIVITY_RE = re.compile(r"^\s*(?:vacances|rando|plage|mariage|sport)\s+", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_CAPITALIZED_RUN_RE = re.compile(
    r"[A-ZÀ-ÖØ-Þ][A-Za-zÀ-ÖØ-öø-ÿ']*(?:[ -][A-ZÀ-ÖØ-Þ][A-Za-zÀ-ÖØ-öø-ÿ']*)*"
)
_ACTIVITY_WORD_RE = re.compile(rf"(?<!\w)(?:{'|'.join(ACTIVITY_WORDS)})(?!\w)", re.IGNORECASE)
_STANDALONE_PREPOSITION_RE = re.compile(r"(?<![\w-])(?:à|a)(?![\w-])", re.IGNORECASE)
_BARE_NUMBER_RE = re.compile(r"\b\d{1,4}\b")


def _collapse(s: str) -> str:
    return re.sub(r"\s{2,}", " ", s).strip()


def to_iso_date(moment: dt.date | dt.datetime) -> str:
    """Render a date or timestamp as YYYY-MM-DD (UTC calendar day)."""
    if isinstance(moment, dt.datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(dt.timezone.utc)
        return moment.date().isoformat()
    return moment.isoformat()


def normalize_date_iso(value: Optional[str]) -> Optional[str]:
    """Return an ISO date string for `value`, or None when it cannot be read.

    Surrounding whitespace is stripped first; a string then shaped like
    YYYY-MM-DD is returned as is. Anything else goes through dateutil
    (day-first, as in French usage). Timestamps outside the representable
    range yield None.
    """
    if not value or not isinstance(value, str):
        return None
    candidate = value.strip()
    if _ISO_DATE_RE.match(candidate):
        return candidate
    try:
        return to_iso_date(date_parser.parse(candidate, dayfirst=True))
    except (ValueError, OverflowError):
        return None


def sanitize_location_string(value: Optional[str]) -> Optional[str]:
    """Reduce a model- or user-supplied location to a bare place name.

    >>> sanitize_location_string("à Paris le 10 octobre 2025")
    'Paris'
    """
    if not value:
        return None
    s = str(value).strip()
    s = _DATE_FRAGMENT_RE.sub("", s).strip()
    m = _AFTER_PREPOSITION_RE.search(s)
    if m:
        s = m.group(1).strip()
    s = _LEADING_ACTIVITY_RE.sub("", s).strip()
    s = _YEAR_RE.sub(" ", s)
    s = _collapse(s)
    s = re.sub(r"[,.;:!?]+$", "", s).strip()
    return s or None


def extract_candidate_location(query: Optional[str]) -> Optional[str]:
    """Return the first capitalized word run that is not a month or stopword."""
    q = (query or "").strip()
    if not q:
        return None
    for match in _CAPITALIZED_RUN_RE.finditer(q):
        token = match.group(0).strip(" -")
        norm = token.lower()
        if norm in FRENCH_MONTHS or norm in _LOCATION_STOPWORDS:
            continue
        return token
    return None


def clean_query_for_geocoding(query: Optional[str]) -> Optional[str]:
    """Strip dates, activity words, years, prepositions and numbers from a raw query.

    Last-resort geocoder input when neither the parsed location nor a
    capitalized candidate could be resolved.
    """
    if not query:
        return None
    s = re.sub(r"\ble\s*\d{1,2}\s*[a-zA-Zéèêëàâôûùîïç]+", " ", query, flags=re.IGNORECASE)
    s = _ACTIVITY_WORD_RE.sub(" ", s)
    s = _STANDALONE_PREPOSITION_RE.sub(" ", s)
    s = _YEAR_RE.sub(" ", s)
    s = _BARE_NUMBER_RE.sub(" ", s)
    s = _collapse(s)
    return s or None
