"""Request lifecycle for a weather risk prediction.

intent -> date -> coordinates -> horizon -> dispatch -> aggregate

Each fallback chain is an ordered list of fallible steps tried until one
returns a value. Blocking upstream calls run in worker threads so the
concurrent branches can overlap.
"""
from __future__ import annotations

import asyncio
import datetime as dt
from functools import partial
from typing import Awaitable, Callable, Optional

from .climatology import fetch_climatology
from .config import Settings, settings as default_settings
from .data_sources import ForecastFetch, HistoricalDaySource, build_historical_source, fetch_gfs_forecast_day
from .domain import (
    ClimatologySample,
    Coordinate,
    ForecastSample,
    HorizonDecision,
    ParsedIntent,
    PredictionQuery,
    PredictionResult,
    PredictionSource,
)
from .errors import ExtractionIncompleteError, InvalidRequestError, MissingCoordinatesError, PlaceNotFoundError
from .extraction import extract_intent
from .geocoder import NominatimGeocoder
from .heuristic_parser import parse_french_fallback
from .llm_client import OpenRouterClient
from .risk_engine import build_prediction, classify_horizon
from .text_normalizer import clean_query_for_geocoding, extract_candidate_location, normalize_date_iso, to_iso_date
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="pipeline")

IntentExtractor = Callable[[str, dt.datetime], ParsedIntent]
Clock = Callable[[], dt.datetime]


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class PredictionPipeline:
    """Resolve a PredictionQuery into a PredictionResult.

    All collaborators are injectable; by default they are built from
    `settings`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        intent_extractor: IntentExtractor | None = None,
        geocoder: NominatimGeocoder | None = None,
        forecast_fetch: ForecastFetch | None = None,
        historical_source: HistoricalDaySource | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or default_settings
        if intent_extractor is None:
            client = OpenRouterClient(self.settings)
            intent_extractor = lambda text, now: extract_intent(text, client, today=now)  # noqa: E731
        self.intent_extractor = intent_extractor
        self.geocoder = geocoder or NominatimGeocoder(self.settings)
        self.forecast_fetch = forecast_fetch or fetch_gfs_forecast_day
        self.historical_source = historical_source or build_historical_source(self.settings)
        self.clock = clock or utc_now

    async def predict(self, query: PredictionQuery) -> PredictionResult:
        now = self.clock()
        intent = await self.resolve_intent(query, now)
        date_iso, target = self.resolve_date(intent, now)
        coord = await self.resolve_coordinates(query, intent)

        horizon = classify_horizon(target, now, self.settings.forecast_horizon_days)
        logger.info("Horizon classified", extra={"stage": "horizon", "date": date_iso, **horizon.model_dump()})

        forecast, historical, source = await self.dispatch(coord, date_iso, horizon)
        result = build_prediction(
            date_iso=date_iso,
            source=source,
            forecast=forecast,
            historical=historical,
            activity=intent.activity,
            forecast_weight=self.settings.forecast_weight,
            historical_weight=self.settings.historical_weight,
            outdoor_multiplier=self.settings.outdoor_risk_multiplier,
        )
        logger.info("Prediction ready", extra={"stage": "aggregate", "result": result.model_dump(mode="json")})
        return result

    async def resolve_intent(self, query: PredictionQuery, now: dt.datetime) -> ParsedIntent:
        """AI extraction first, explicit fields next, heuristic fallback last."""
        explicit_date = normalize_date_iso(query.date)
        if query.date and explicit_date is None:
            raise InvalidRequestError(f"Invalid date: {query.date}")
        intent = ParsedIntent(date_iso=explicit_date, activity=query.activity or None)

        text = query.text
        if not text:
            return intent

        ai_intent = await asyncio.to_thread(self.intent_extractor, text, now)
        intent = ai_intent.merged_with(intent)
        logger.info("Intent after AI extraction", extra={"stage": "intent", "intent": intent.model_dump()})

        if self.settings.parsing_strict and not intent.is_complete:
            logger.info("Strict parsing: extraction incomplete, stopping", extra={"stage": "intent"})
            raise ExtractionIncompleteError(
                has_location=bool(intent.location),
                has_date=bool(intent.date_iso),
                activity=intent.activity,
            )

        if not intent.is_complete or not intent.activity:
            intent = intent.merged_with(parse_french_fallback(text, today=now.date()))
            logger.info("Intent after heuristic fallback", extra={"stage": "intent", "intent": intent.model_dump()})
        return intent

    def resolve_date(self, intent: ParsedIntent, now: dt.datetime) -> tuple[str, dt.date]:
        """Validate the resolved date, defaulting to a week from now."""
        date_iso = intent.date_iso
        if not date_iso:
            date_iso = to_iso_date(now + dt.timedelta(days=self.settings.default_days_ahead))
            logger.info("No date resolved; using default", extra={"stage": "date", "date": date_iso})
        try:
            target = dt.date.fromisoformat(date_iso)
        except ValueError as exc:
            raise InvalidRequestError(f"Invalid date: {date_iso}") from exc
        return target.isoformat(), target

    async def resolve_coordinates(self, query: PredictionQuery, intent: ParsedIntent) -> Coordinate:
        """Direct coordinates, then geocode location, candidate, cleaned query."""
        tried: set[str] = set()

        async def _direct() -> Optional[Coordinate]:
            if query.lat is None or query.lon is None:
                return None
            return Coordinate(lat=query.lat, lon=query.lon)

        async def _geocode(place: Optional[str], label: str) -> Optional[Coordinate]:
            if not place or place.lower() in tried:
                return None
            tried.add(place.lower())
            try:
                return await asyncio.to_thread(self.geocoder.geocode, place)
            except PlaceNotFoundError as exc:
                logger.warning("Geocoding attempt failed: %s", exc, extra={"stage": "geocode", "attempt": label})
                return None

        text = query.text
        steps: list[tuple[str, Callable[[], Awaitable[Optional[Coordinate]]]]] = [
            ("direct", _direct),
            ("location", partial(_geocode, intent.location, "location")),
            ("candidate", partial(_geocode, extract_candidate_location(text), "candidate")),
            ("cleaned", partial(_geocode, clean_query_for_geocoding(text), "cleaned")),
        ]
        for label, step in steps:
            coord = await step()
            if coord is not None:
                logger.info(
                    "Coordinates resolved",
                    extra={"stage": "geocode", "attempt": label, "lat": coord.lat, "lon": coord.lon},
                )
                return coord
        raise MissingCoordinatesError()

    async def _climatology(self, coord: Coordinate, date_iso: str) -> ClimatologySample:
        return await fetch_climatology(
            self.historical_source,
            coord.lat,
            coord.lon,
            date_iso,
            years_back=self.settings.history_years,
            rain_threshold_mm=self.settings.rain_threshold_mm,
        )

    async def dispatch(
        self,
        coord: Coordinate,
        date_iso: str,
        horizon: HorizonDecision,
    ) -> tuple[Optional[ForecastSample], Optional[ClimatologySample], PredictionSource]:
        """Near future: forecast and climatology together, both optional.
        Otherwise climatology alone, and its failure propagates."""
        if not horizon.use_forecast:
            logger.info("Using historical source only", extra={"stage": "dispatch"})
            historical = await self._climatology(coord, date_iso)
            return None, historical, PredictionSource.HISTORICAL

        logger.info("Using forecast and historical sources", extra={"stage": "dispatch"})
        forecast_res, hist_res = await asyncio.gather(
            asyncio.to_thread(self.forecast_fetch, coord.lat, coord.lon, date_iso),
            self._climatology(coord, date_iso),
            return_exceptions=True,
        )
        forecast = None
        if isinstance(forecast_res, BaseException):
            logger.warning("Forecast branch failed: %s", forecast_res, extra={"stage": "dispatch"})
        else:
            forecast = forecast_res
        historical = None
        if isinstance(hist_res, BaseException):
            logger.warning("Historical branch failed: %s", hist_res, extra={"stage": "dispatch"})
        else:
            historical = hist_res
        return forecast, historical, PredictionSource.FORECAST_AND_HISTORICAL
