"""Factory helpers for choosing the historical climatology provider at startup."""

from __future__ import annotations

from meteo_risk import config
from meteo_risk.data_sources.base import CallableHistoricalSource, HistoricalDaySource
from meteo_risk.data_sources.nasa_power_client import fetch_power_day
from meteo_risk.data_sources.open_meteo_client import fetch_era5_day
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "nasa_power"


def build_historical_source(settings: config.Settings | None = None) -> HistoricalDaySource:
    """Instantiate the configured historical provider."""
    settings = settings or config.settings
    source = (settings.historical_source or DEFAULT_SOURCE_NAME).lower()

    if source == "nasa_power":
        logger.info("Using NASA POWER historical source")
        return CallableHistoricalSource(name="nasa_power", day_fetcher=fetch_power_day)

    if source == "era5":
        logger.info("Using Open-Meteo ERA5 historical source")
        return CallableHistoricalSource(name="era5", day_fetcher=fetch_era5_day)

    raise ValueError(f"Unknown historical source '{source}'")
