"""Exception taxonomy for the prediction and parse flows.

Errors that reach the HTTP layer carry their status code; the others are
raised by upstream clients and absorbed inside the pipeline.
"""

from __future__ import annotations

from typing import Any


class MeteoRiskError(Exception):
    """Base class for errors rendered as `{"error": message}` responses."""
    status_code: int = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InvalidRequestError(MeteoRiskError):
    """Malformed or missing request fields; rejected before any upstream call."""
    status_code = 400


class MissingCoordinatesError(MeteoRiskError):
    """Every coordinate-resolution step failed."""
    status_code = 400

    def __init__(self, message: str = "Missing coordinates or resolvable location"):
        super().__init__(message)


class ExtractionIncompleteError(MeteoRiskError):
    """Strict parsing mode and the model did not return location and/or date."""
    status_code = 422

    def __init__(self, *, has_location: bool, has_date: bool, activity: str | None):
        super().__init__(
            "Extraction par le modèle incomplète: 'location' et/ou 'dateISO' manquent",
            details={"location": has_location, "dateISO": has_date, "activity": activity},
        )


class MissingCredentialError(MeteoRiskError):
    """No API key configured for the language-model provider."""
    status_code = 500


class UpstreamError(MeteoRiskError):
    """Upstream call failed or returned content we cannot use, with no fallback."""
    status_code = 502


class PlaceNotFoundError(LookupError):
    """Geocoder returned no result (or failed) for a place name."""


class LLMUnavailableError(RuntimeError):
    """Language-model call failed: transport, status, or response shape."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
