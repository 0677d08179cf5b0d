"""Interfaces and helpers for weather data sources."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable, Protocol

from meteo_risk.domain import DailyObservation, ForecastSample

ForecastFetch = Callable[[float, float, str], ForecastSample]


class HistoricalDaySource(Protocol):
    """Anything that can return one historical day at a point."""

    name: str

    def fetch_day(self, latitude: float, longitude: float, day: dt.date) -> DailyObservation:
        """Return the observation for `day`; raise on upstream failure."""
        ...


@dataclass
class CallableHistoricalSource(HistoricalDaySource):
    """Wrap a per-day fetch callable so providers can be swapped."""

    name: str
    day_fetcher: Callable[[float, float, dt.date], DailyObservation]

    def fetch_day(self, latitude: float, longitude: float, day: dt.date) -> DailyObservation:
        """Delegate to the configured per-day callable."""
        return self.day_fetcher(latitude, longitude, day)
