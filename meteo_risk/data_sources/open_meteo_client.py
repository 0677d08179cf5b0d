"""Helpers for fetching GFS forecasts and ERA5 reanalysis days from Open-Meteo."""
from __future__ import annotations

import datetime as dt
from statistics import fmean
from typing import Any, List, Optional

from meteo_risk.config import settings
from meteo_risk.domain import DailyObservation, ForecastSample
from meteo_risk.http_session import build_session
from meteo_risk.risk_engine import round_half_up
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="open_meteo_client")

session = build_session()

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_ERA5_URL = "https://archive-api.open-meteo.com/v1/era5"

FORECAST_HOURLY_VARS = [
    "temperature_2m",
    "wind_speed_10m",
    "cloud_cover",
    "precipitation",
    "precipitation_probability",
]
ERA5_DAILY_VARS = ["precipitation_sum", "temperature_2m_mean", "wind_speed_10m_max"]

EXPECTED_UNITS = {
    "temperature_2m": "°C",
    "temperature_2m_mean": "°C",
    "wind_speed_10m": "m/s",
    "wind_speed_10m_max": "m/s",
    "cloud_cover": "%",
    "precipitation": "mm",
    "precipitation_sum": "mm",
    "precipitation_probability": "%",
}

# Acceptable alternative spellings that should not trigger warnings.
ALLOWED_UNIT_SYNONYMS = {
    "wind_speed_10m": {"m/s", "ms"},
    "wind_speed_10m_max": {"m/s", "ms"},
    "cloud_cover": {"%", "percent"},
    "precipitation_probability": {"%", "percent"},
}


def _warn_on_unexpected_units(units: dict | None, *, context: str) -> None:
    """Log a warning if Open-Meteo returns units we did not request."""
    if not units:
        return
    for field, expected in EXPECTED_UNITS.items():
        actual = units.get(field)
        if not actual or actual == expected:
            continue
        if actual not in ALLOWED_UNIT_SYNONYMS.get(field, set()):
            logger.warning(
                "Unexpected Open-Meteo unit",
                extra={"context": context, "field": field, "unit": actual, "expected": expected},
            )


def _at(series: List[Any] | None, idx: int) -> Optional[float]:
    """Value at `idx`, or None when the series is missing or too short."""
    if not series or idx >= len(series):
        return None
    return series[idx]


def _present(series: List[Any] | None) -> List[float]:
    return [v for v in (series or []) if v is not None]


def _noon_index(times: List[str]) -> int:
    """Index of the 12:00 UTC sample, or the middle of the series."""
    for i, t in enumerate(times):
        if str(t).endswith("T12:00"):
            return i
    return len(times) // 2


def fetch_gfs_forecast_day(latitude: float, longitude: float, date_iso: str) -> ForecastSample:
    """Fetch one UTC day of GFS hourly data and reduce it to a ForecastSample.

    Temperature and wind come from the noon sample; cloud cover and
    precipitation probability are day means; precipitation is the day sum.
    Non-2xx responses raise requests.HTTPError.
    """
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": ",".join(FORECAST_HOURLY_VARS),
        "models": "gfs_seamless",
        "timezone": "UTC",
        "wind_speed_unit": "ms",
        "start_date": date_iso,
        "end_date": date_iso,
    }
    logger.info(
        "Requesting GFS forecast day",
        extra={"stage": "dispatch", "latitude": latitude, "longitude": longitude, "date": date_iso},
    )
    resp = session.get(OPEN_METEO_FORECAST_URL, params=params, timeout=settings.request_timeout_seconds)
    resp.raise_for_status()
    data = resp.json()

    hourly = data.get("hourly") or {}
    _warn_on_unexpected_units(data.get("hourly_units"), context="gfs_hourly")
    times = hourly.get("time") or []
    idx = _noon_index(times)

    precip = _present(hourly.get("precipitation"))
    precip_prob = _present(hourly.get("precipitation_probability"))
    cloud = _present(hourly.get("cloud_cover"))

    sample = ForecastSample(
        temp_c=_at(hourly.get("temperature_2m"), idx),
        wind_speed_ms=_at(hourly.get("wind_speed_10m"), idx),
        cloud_pct=round_half_up(fmean(cloud)) if cloud else None,
        precip_mm=round(sum(precip), 2) if precip else None,
        precip_prob_pct=round_half_up(fmean(precip_prob)) if precip_prob else None,
    )
    logger.info(
        "GFS day aggregated",
        extra={"stage": "dispatch", "hours": len(times), "sample": sample.model_dump()},
    )
    return sample


def fetch_era5_day(latitude: float, longitude: float, day: dt.date) -> DailyObservation:
    """Fetch one ERA5 reanalysis day (precipitation sum, mean temperature, max wind)."""
    iso = day.isoformat()
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "start_date": iso,
        "end_date": iso,
        "daily": ",".join(ERA5_DAILY_VARS),
        "timezone": "UTC",
        "wind_speed_unit": "ms",
    }
    logger.debug("Requesting ERA5 day", extra={"stage": "dispatch", "date": iso})
    resp = session.get(OPEN_METEO_ERA5_URL, params=params, timeout=settings.request_timeout_seconds)
    resp.raise_for_status()
    data = resp.json()

    daily = data.get("daily") or {}
    _warn_on_unexpected_units(data.get("daily_units"), context="era5_daily")
    return DailyObservation(
        precip_mm=_at(daily.get("precipitation_sum"), 0),
        temp_c=_at(daily.get("temperature_2m_mean"), 0),
        wind_ms=_at(daily.get("wind_speed_10m_max"), 0),
    )
