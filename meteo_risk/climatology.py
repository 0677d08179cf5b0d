"""Same-calendar-day climatology over the previous N years."""
from __future__ import annotations

import asyncio
import datetime as dt
from statistics import fmean
from typing import List, Sequence

from meteo_risk.data_sources import HistoricalDaySource
from meteo_risk.domain import ClimatologySample, DailyObservation
from meteo_risk.risk_engine import round_half_up, round_one_decimal
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="climatology")

DEFAULT_YEARS_BACK = 10
DEFAULT_RAIN_THRESHOLD_MM = 1.0


def same_day_in_year(target: dt.date, year: int) -> dt.date:
    """Target month/day in `year`; 29 February becomes 28 February in common years."""
    try:
        return target.replace(year=year)
    except ValueError:
        return target.replace(year=year, day=28)


def lookback_days(target: dt.date, years_back: int = DEFAULT_YEARS_BACK) -> List[dt.date]:
    """The same calendar day in each of the `years_back` years before the target year."""
    return [same_day_in_year(target, target.year - 1 - i) for i in range(years_back)]


def aggregate_climatology(
    observations: Sequence[DailyObservation],
    *,
    rain_threshold_mm: float = DEFAULT_RAIN_THRESHOLD_MM,
) -> ClimatologySample:
    """Reduce per-year observations; an empty input yields an all-None sample.

    A year with no precipitation value counts as dry. Means skip years that
    lack the variable.
    """
    if not observations:
        return ClimatologySample()

    rainy = sum(1 for o in observations if o.precip_mm is not None and o.precip_mm >= rain_threshold_mm)
    temps = [o.temp_c for o in observations if o.temp_c is not None]
    winds = [o.wind_ms for o in observations if o.wind_ms is not None]

    return ClimatologySample(
        rain_probability_pct=round_half_up(100 * rainy / len(observations)),
        mean_temp_c=round_one_decimal(fmean(temps)) if temps else None,
        mean_wind_ms=round_one_decimal(fmean(winds)) if winds else None,
        years_used=len(observations),
    )


async def fetch_climatology(
    source: HistoricalDaySource,
    latitude: float,
    longitude: float,
    date_iso: str,
    *,
    years_back: int = DEFAULT_YEARS_BACK,
    rain_threshold_mm: float = DEFAULT_RAIN_THRESHOLD_MM,
) -> ClimatologySample:
    """
    Fetch every lookback year concurrently and aggregate the ones that succeed.

    Individual year failures are logged and dropped; they never fail the
    aggregate.
    """
    target = dt.date.fromisoformat(date_iso)
    days = lookback_days(target, years_back)
    logger.info(
        "Collecting historical days",
        extra={"stage": "dispatch", "source": source.name, "date": date_iso, "years": [d.year for d in days]},
    )

    results = await asyncio.gather(
        *(asyncio.to_thread(source.fetch_day, latitude, longitude, day) for day in days),
        return_exceptions=True,
    )

    observations: List[DailyObservation] = []
    for day, result in zip(days, results):
        if isinstance(result, BaseException):
            logger.warning(
                "Historical year failed: %s",
                result,
                extra={"stage": "dispatch", "source": source.name, "year": day.year},
            )
            continue
        observations.append(result)

    sample = aggregate_climatology(observations, rain_threshold_mm=rain_threshold_mm)
    logger.info(
        "Historical aggregate",
        extra={"stage": "aggregate", "source": source.name, "sample": sample.model_dump()},
    )
    return sample
