"""Deterministic blending of forecast and climatology into one risk record.

Everything here is pure: no I/O, no clock reads except through arguments.
Rounding is half-up everywhere so results match the published formula
(`round(0.7 * 80 + 0.3 * 40) == 68`) rather than Python's banker's rounding.
"""

from __future__ import annotations

import datetime as dt
import math
import re

from .domain import (
    ClimatologySample,
    ForecastSample,
    HorizonDecision,
    PredictionResult,
    PredictionSource,
    WindLabel,
)

DEFAULT_FORECAST_WEIGHT = 0.7
DEFAULT_HISTORICAL_WEIGHT = 0.3
DEFAULT_OUTDOOR_MULTIPLIER = 1.15
NEUTRAL_RAIN_RISK = 50
LOGISTIC_MIDPOINT_MM = 3.0
STRONG_WIND_MS = 10.0
MODERATE_WIND_MS = 5.0

_OUTDOOR_ACTIVITY_RE = re.compile(r"vacances|extérieur|exterieur|rando|plage", re.IGNORECASE)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (3.5 -> 4, 12.5 -> 13)."""
    return int(math.floor(value + 0.5))


def round_one_decimal(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def _clamp_pct(value: int) -> int:
    return max(0, min(100, value))


def precip_mm_to_probability(mm: float) -> int:
    """Map a daily precipitation amount to a rain probability with a logistic curve."""
    x = max(0.0, mm)
    return _clamp_pct(round_half_up(100 / (1 + math.exp(-(x - LOGISTIC_MIDPOINT_MM)))))


def label_wind(speed_ms: float | None) -> WindLabel:
    """Qualitative label for a wind speed in m/s."""
    if speed_ms is None:
        return WindLabel.INCONNU
    if speed_ms > STRONG_WIND_MS:
        return WindLabel.FORT
    if speed_ms > MODERATE_WIND_MS:
        return WindLabel.MODERE
    return WindLabel.FAIBLE


def is_outdoor_activity(activity: str | None) -> bool:
    return bool(activity and _OUTDOOR_ACTIVITY_RE.search(activity))


def blend_rain_risk(
    forecast: ForecastSample | None,
    historical: ClimatologySample | None,
    activity: str | None = None,
    *,
    forecast_weight: float = DEFAULT_FORECAST_WEIGHT,
    historical_weight: float = DEFAULT_HISTORICAL_WEIGHT,
    outdoor_multiplier: float = DEFAULT_OUTDOOR_MULTIPLIER,
) -> int:
    """Resolve the rain risk percentage.

    Priority: forecast probability, then forecast amount (logistic), each
    blended with the historical probability; then historical alone; then the
    neutral 50. Outdoor activities are inflated last.
    """
    hist_prob = historical.rain_probability_pct if historical else None

    def _blend(forecast_prob: float) -> int:
        other = hist_prob if hist_prob is not None else forecast_prob
        return round_half_up(forecast_weight * forecast_prob + historical_weight * other)

    if forecast is not None and forecast.precip_prob_pct is not None:
        risk = _blend(forecast.precip_prob_pct)
    elif forecast is not None and forecast.precip_mm is not None:
        risk = _blend(precip_mm_to_probability(forecast.precip_mm))
    elif hist_prob is not None:
        risk = hist_prob
    else:
        risk = NEUTRAL_RAIN_RISK

    if is_outdoor_activity(activity):
        risk = min(100, round_half_up(risk * outdoor_multiplier))
    return _clamp_pct(risk)


def classify_horizon(target: dt.date, now: dt.datetime, horizon_days: int = 16) -> HorizonDecision:
    """Whole days between now and the target day (00:00 UTC), and forecast coverage."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    target_start = dt.datetime(target.year, target.month, target.day, tzinfo=dt.timezone.utc)
    days_ahead = math.floor((target_start - now).total_seconds() / 86400)
    return HorizonDecision(
        days_ahead=days_ahead,
        is_future=target_start > now,
        within_horizon=days_ahead <= horizon_days,
    )


def build_prediction(
    *,
    date_iso: str,
    source: PredictionSource,
    forecast: ForecastSample | None,
    historical: ClimatologySample | None,
    activity: str | None = None,
    forecast_weight: float = DEFAULT_FORECAST_WEIGHT,
    historical_weight: float = DEFAULT_HISTORICAL_WEIGHT,
    outdoor_multiplier: float = DEFAULT_OUTDOOR_MULTIPLIER,
) -> PredictionResult:
    """Combine whatever branches succeeded into the externally visible result."""
    temp_c = forecast.temp_c if forecast and forecast.temp_c is not None else None
    if temp_c is None and historical is not None:
        temp_c = historical.mean_temp_c

    wind_ms = forecast.wind_speed_ms if forecast and forecast.wind_speed_ms is not None else None
    if wind_ms is None and historical is not None:
        wind_ms = historical.mean_wind_ms

    return PredictionResult(
        rain_risk_pct=blend_rain_risk(
            forecast,
            historical,
            activity,
            forecast_weight=forecast_weight,
            historical_weight=historical_weight,
            outdoor_multiplier=outdoor_multiplier,
        ),
        wind_label=label_wind(wind_ms),
        temp_c=round_one_decimal(temp_c) if temp_c is not None else None,
        source=source,
        date=date_iso,
    )
