import unittest

from meteo_risk.data_sources.base import CallableHistoricalSource
from meteo_risk.data_sources.factory import DEFAULT_SOURCE_NAME, build_historical_source
from meteo_risk.data_sources.nasa_power_client import fetch_power_day
from meteo_risk.data_sources.open_meteo_client import fetch_era5_day


class DummySettings:
    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)
        # provide defaults if not passed
        self.historical_source = getattr(self, "historical_source", DEFAULT_SOURCE_NAME)


class TestDataSourceFactory(unittest.TestCase):
    def test_build_nasa_power_default(self):
        ds = build_historical_source(DummySettings())
        self.assertIsInstance(ds, CallableHistoricalSource)
        self.assertEqual(ds.name, "nasa_power")
        self.assertIs(ds.day_fetcher, fetch_power_day)

    def test_build_era5(self):
        ds = build_historical_source(DummySettings(historical_source="ERA5"))
        self.assertEqual(ds.name, "era5")
        self.assertIs(ds.day_fetcher, fetch_era5_day)

    def test_unknown_source_raises(self):
        with self.assertRaises(ValueError):
            build_historical_source(DummySettings(historical_source="unknown-source"))


if __name__ == "__main__":
    unittest.main()
