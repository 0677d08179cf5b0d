"""Domain vocabulary and strict schemas for weather risk predictions.

These models are the contract between the parsers, the upstream clients, the
blending engine and the HTTP layer. Upstream payload shapes never reach this
module; each client projects its raw JSON into one of these records.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class WindLabel(str, Enum):
    """Qualitative wind strength reported to users."""
    FAIBLE = "faible"
    MODERE = "modéré"
    FORT = "fort"
    INCONNU = "inconnu"


class PredictionSource(str, Enum):
    """Which retrieval path produced a prediction."""
    FORECAST_AND_HISTORICAL = "GFS+ERA5"
    HISTORICAL = "ERA5"


class PredictionQuery(BaseModel):
    """Inbound request: free text plus optional explicit overrides."""
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    query: str | None = None
    lat: float | None = Field(default=None, ge=-90.0, le=90.0)
    lon: float | None = Field(default=None, ge=-180.0, le=180.0)
    date: str | None = None
    activity: str | None = None

    @property
    def text(self) -> str | None:
        return self.query or None


class ParsedIntent(_StrictBaseModel):
    """Structured fields extracted from a free-text query; every field optional."""
    location: str | None = None
    date_iso: str | None = None
    activity: str | None = None

    def merged_with(self, fallback: "ParsedIntent") -> "ParsedIntent":
        """Fill missing fields from `fallback`; values already present are kept."""
        return ParsedIntent(
            location=self.location or fallback.location,
            date_iso=self.date_iso or fallback.date_iso,
            activity=self.activity or fallback.activity,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.location and self.date_iso)


class Coordinate(_StrictBaseModel):
    """WGS84 point in decimal degrees."""
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class ForecastSample(_StrictBaseModel):
    """One target day at one location from the numerical forecast."""
    temp_c: float | None = None
    wind_speed_ms: float | None = None
    cloud_pct: float | None = None
    precip_mm: float | None = None
    precip_prob_pct: float | None = None


class DailyObservation(_StrictBaseModel):
    """A single historical day (one year of the climatology window)."""
    precip_mm: float | None = None
    temp_c: float | None = None
    wind_ms: float | None = None


class ClimatologySample(_StrictBaseModel):
    """Same-calendar-day aggregate over the lookback window.

    All three statistics are None when no year could be fetched; absence of
    data is not favorable weather.
    """
    rain_probability_pct: int | None = None
    mean_temp_c: float | None = None
    mean_wind_ms: float | None = None
    years_used: int = 0


class HorizonDecision(_StrictBaseModel):
    """How far ahead the target date is, and whether the forecast covers it."""
    days_ahead: int
    is_future: bool
    within_horizon: bool

    @property
    def use_forecast(self) -> bool:
        return self.is_future and self.within_horizon


class PredictionResult(_StrictBaseModel):
    """Externally visible outcome of one prediction request."""
    rain_risk_pct: int = Field(ge=0, le=100)
    wind_label: WindLabel
    temp_c: float | None = None
    source: PredictionSource
    date: str
