"""Upstream weather providers and the factory that picks the historical one."""

from .base import CallableHistoricalSource, ForecastFetch, HistoricalDaySource
from .factory import build_historical_source
from .nasa_power_client import fetch_power_day
from .open_meteo_client import fetch_era5_day, fetch_gfs_forecast_day

__all__ = [
    "build_historical_source",
    "CallableHistoricalSource",
    "ForecastFetch",
    "HistoricalDaySource",
    "fetch_era5_day",
    "fetch_gfs_forecast_day",
    "fetch_power_day",
]
