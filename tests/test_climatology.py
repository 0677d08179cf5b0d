import datetime as dt
import unittest

import pytest

from meteo_risk.climatology import aggregate_climatology, fetch_climatology, lookback_days, same_day_in_year
from meteo_risk.data_sources.base import CallableHistoricalSource
from meteo_risk.domain import DailyObservation


class TestLookback(unittest.TestCase):
    def test_previous_years_same_day(self):
        days = lookback_days(dt.date(2025, 10, 20), 3)
        self.assertEqual(days, [dt.date(2024, 10, 20), dt.date(2023, 10, 20), dt.date(2022, 10, 20)])

    def test_leap_day_maps_to_28_february(self):
        self.assertEqual(same_day_in_year(dt.date(2028, 2, 29), 2027), dt.date(2027, 2, 28))
        self.assertEqual(same_day_in_year(dt.date(2028, 2, 29), 2024), dt.date(2024, 2, 29))


class TestAggregate(unittest.TestCase):
    def test_no_years_is_all_none(self):
        sample = aggregate_climatology([])
        self.assertIsNone(sample.rain_probability_pct)
        self.assertIsNone(sample.mean_temp_c)
        self.assertIsNone(sample.mean_wind_ms)
        self.assertEqual(sample.years_used, 0)

    def test_rain_probability_and_means(self):
        observations = [
            DailyObservation(precip_mm=0.0, temp_c=10.0, wind_ms=2.0),
            DailyObservation(precip_mm=1.0, temp_c=12.0, wind_ms=None),
            DailyObservation(precip_mm=5.2, temp_c=None, wind_ms=4.0),
            DailyObservation(precip_mm=None, temp_c=11.0, wind_ms=3.0),
        ]
        sample = aggregate_climatology(observations, rain_threshold_mm=1.0)
        # threshold is inclusive; unknown precipitation counts as dry
        self.assertEqual(sample.rain_probability_pct, 50)
        self.assertEqual(sample.mean_temp_c, 11.0)
        self.assertEqual(sample.mean_wind_ms, 3.0)
        self.assertEqual(sample.years_used, 4)

    def test_rounding_half_up(self):
        observations = [DailyObservation(precip_mm=2.0)] + [DailyObservation(precip_mm=0.0)] * 7
        # 1 / 8 == 12.5 %
        self.assertEqual(aggregate_climatology(observations).rain_probability_pct, 13)


def _source(fetcher):
    return CallableHistoricalSource(name="fake", day_fetcher=fetcher)


@pytest.mark.asyncio
async def test_fetch_climatology_drops_failed_years():
    requested = []

    def fetcher(lat, lon, day):
        requested.append(day)
        if day.year % 2:
            raise RuntimeError("upstream down")
        return DailyObservation(precip_mm=3.0, temp_c=15.0, wind_ms=4.0)

    sample = await fetch_climatology(_source(fetcher), 48.8, 2.3, "2025-06-15", years_back=4, rain_threshold_mm=1.0)

    assert sorted(d.year for d in requested) == [2021, 2022, 2023, 2024]
    assert sample.years_used == 2
    assert sample.rain_probability_pct == 100
    assert sample.mean_temp_c == 15.0


@pytest.mark.asyncio
async def test_fetch_climatology_all_years_failing_is_all_none():
    def fetcher(lat, lon, day):
        raise RuntimeError("upstream down")

    sample = await fetch_climatology(_source(fetcher), 0.0, 0.0, "2025-06-15", years_back=3)

    assert sample.years_used == 0
    assert sample.rain_probability_pct is None
    assert sample.mean_temp_c is None
    assert sample.mean_wind_ms is None
