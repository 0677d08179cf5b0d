"""Place-name lookup against the OpenStreetMap Nominatim search API."""
from __future__ import annotations

import requests

from .config import Settings, settings as default_settings
from .domain import Coordinate
from .errors import PlaceNotFoundError
from .http_session import build_session
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="geocoder")

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"

session = build_session()


class NominatimGeocoder:
    """Resolve a place name to the highest-ranked Nominatim match."""

    def __init__(self, settings: Settings | None = None):
        cfg = settings or default_settings
        self.timeout = cfg.request_timeout_seconds
        self.headers = {
            "User-Agent": cfg.geocoder_user_agent,
            "Accept-Language": cfg.geocoder_accept_language,
            "Referer": cfg.openrouter_http_referer,
        }

    def geocode(self, place: str) -> Coordinate:
        """Return the first match for `place`; raise PlaceNotFoundError otherwise."""
        place = (place or "").strip()
        if not place:
            raise PlaceNotFoundError("Lieu introuvable: nom vide")

        params = {"format": "jsonv2", "q": place, "limit": 1}
        try:
            resp = session.get(NOMINATIM_SEARCH_URL, params=params, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            results = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise PlaceNotFoundError(f"Geocoding failed for {place!r}: {exc}") from exc

        if not isinstance(results, list) or not results:
            raise PlaceNotFoundError(f"Lieu introuvable: {place}")

        first = results[0]
        try:
            coord = Coordinate(lat=float(first["lat"]), lon=float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise PlaceNotFoundError(f"Malformed geocoder result for {place!r}") from exc

        logger.info(
            "Geocoded place",
            extra={"stage": "geocode", "place": place, "lat": coord.lat, "lon": coord.lon},
        )
        return coord
