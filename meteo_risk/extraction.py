"""Language-model extraction of {location, dateISO, activity} from free text.

The model is asked for a minified JSON object constrained by a JSON schema.
Whatever comes back is treated as an untrusted, loosely-typed map and
projected into our own records in exactly one place
(`project_model_payload`), so field-name variations never leak further.
"""

from __future__ import annotations

import datetime as dt
import json
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from .domain import ParsedIntent
from .errors import LLMUnavailableError, MissingCredentialError, UpstreamError
from .llm_client import OpenRouterClient
from .text_normalizer import normalize_date_iso, sanitize_location_string, to_iso_date
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="extraction")


SYSTEM_PROMPT_EXTRACTION = (
    "Extrait STRICTEMENT en JSON minifié les TROIS champs suivants avec ces clés EXACTES: "
    '{"location":"<nom_du_lieu_sans_préposition>","dateISO":"YYYY-MM-DD","activity":"<activité_ou_null>"}.\n'
    "Règles: 1) location doit être uniquement le nom du lieu (ex: \"Paris\"), sans mots comme "
    "\"à\", \"le\", \"vacances\", ni date. 2) dateISO doit être au format YYYY-MM-DD (mois français "
    "acceptés, utiliser l'année courante si absente, ou l'année suivante si la date est déjà passée). "
    "3) activity doit refléter l'activité détectée (ex: \"vacances\"), sinon null. "
    "4) Réponds UNIQUEMENT par un objet JSON, sans texte additionnel."
)

EXTRACTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "location": {"type": "string", "description": "Nom du lieu sans préposition (ex: Paris)"},
        "dateISO": {
            "type": "string",
            "pattern": r"^\d{4}-\d{2}-\d{2}$",
            "description": "Date au format YYYY-MM-DD",
        },
        "activity": {"type": ["string", "null"], "description": "Activité détectée (ex: vacances) ou null"},
    },
    "required": ["location", "dateISO", "activity"],
    "additionalProperties": False,
}

RESPONSE_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {"name": "extraction_fr", "strict": True, "schema": EXTRACTION_SCHEMA},
}

_LOCATION_KEYS = ("location", "lieu", "ville")
_DATE_KEYS = ("dateISO", "date")
_ACTIVITY_KEYS = ("activity", "activite")


class RawExtraction(BaseModel):
    """Model output after synonym mapping, before normalization."""
    location: str | None = None
    date_iso: str | None = None
    activity: str | None = None


class ExtractionReport(BaseModel):
    """Everything the parse endpoint reports back about one model call."""
    model_config = ConfigDict(protected_namespaces=())

    model_content: str
    model_parsed: RawExtraction
    normalized: ParsedIntent


def build_extraction_messages(query: str, today: dt.date | dt.datetime | None = None) -> list[dict]:
    """Prepare system+user messages; the user turn carries today's date for year inference."""
    today = today or dt.datetime.now(dt.timezone.utc)
    return [
        {"role": "system", "content": SYSTEM_PROMPT_EXTRACTION},
        {"role": "user", "content": f"Texte: {query}\nDate actuelle: {to_iso_date(today)}"},
    ]


def _strip_markdown_fences(text: str) -> str:
    """Remove surrounding Markdown code fences some models add around JSON."""
    if not text:
        return text
    t = text.strip()
    if not t.startswith("```"):
        return t
    lines = t.splitlines()
    if lines and lines[0].strip().startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def parse_model_content(content: str) -> dict[str, Any]:
    """Decode the model's JSON object; raises ValueError if it is not one."""
    obj = json.loads(_strip_markdown_fences(content))
    if not isinstance(obj, dict):
        raise ValueError(f"Model returned {type(obj).__name__}, expected a JSON object")
    return obj


def _first_string(obj: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def project_model_payload(obj: Mapping[str, Any]) -> RawExtraction:
    """Map model keys (including French synonyms) onto RawExtraction."""
    return RawExtraction(
        location=_first_string(obj, _LOCATION_KEYS),
        date_iso=_first_string(obj, _DATE_KEYS),
        activity=_first_string(obj, _ACTIVITY_KEYS),
    )


def normalize_extraction(raw: RawExtraction) -> ParsedIntent:
    """Apply the text normalizer to the location and date fields."""
    return ParsedIntent(
        location=sanitize_location_string(raw.location),
        date_iso=normalize_date_iso(raw.date_iso),
        activity=raw.activity.strip() if raw.activity else None,
    )


def extract_intent(
    query: str,
    client: OpenRouterClient,
    *,
    today: dt.date | dt.datetime | None = None,
) -> ParsedIntent:
    """Ask the model for the intent; never raises.

    Returns an empty or partial ParsedIntent when the provider is not
    configured, unreachable, or answers with something unusable, so the caller
    can fall back to the heuristic parser.
    """
    if not client.has_credentials:
        logger.info("No language-model credentials; skipping AI extraction", extra={"stage": "intent"})
        return ParsedIntent()

    try:
        content = client.chat(build_extraction_messages(query, today), response_format=RESPONSE_FORMAT)
    except LLMUnavailableError as exc:
        logger.warning("AI extraction unavailable: %s", exc, extra={"stage": "intent"})
        return ParsedIntent()

    logger.debug("Model content (raw): %s", content, extra={"stage": "intent"})
    try:
        raw = project_model_payload(parse_model_content(content))
    except ValueError as exc:
        logger.warning("AI extraction returned unusable content: %s", exc, extra={"stage": "intent"})
        return ParsedIntent()

    intent = normalize_extraction(raw)
    logger.info(
        "AI extraction",
        extra={"stage": "intent", "raw": raw.model_dump(), "normalized": intent.model_dump()},
    )
    return intent


def extract_intent_strict(
    query: str,
    client: OpenRouterClient,
    *,
    today: dt.date | dt.datetime | None = None,
) -> ExtractionReport:
    """Model-only extraction for diagnostics; failures are raised, not absorbed."""
    if not client.has_credentials:
        raise MissingCredentialError("Missing OPENROUTER_API_KEY")

    try:
        content = client.chat(build_extraction_messages(query, today), response_format=RESPONSE_FORMAT)
    except LLMUnavailableError as exc:
        details = {"status": exc.status_code, "text": exc.body} if exc.status_code is not None else None
        raise UpstreamError(str(exc), details=details) from exc

    try:
        obj = parse_model_content(content)
    except ValueError as exc:
        logger.info("Model content is not valid JSON: %s", exc)
        raise UpstreamError("Model content is not valid JSON", details={"content": content}) from exc

    raw = project_model_payload(obj)
    normalized = normalize_extraction(raw)
    logger.info("Parse-only extraction", extra={"normalized": normalized.model_dump()})
    return ExtractionReport(model_content=content, model_parsed=raw, normalized=normalized)
