import os
import unittest

from pydantic import ValidationError

from meteo_risk.config import Settings

_ENV_KEYS = (
    "OPENROUTER_API_KEY",
    "METEO_OPENROUTER_API_KEY",
    "OPENROUTER_MODEL",
    "METEO_OPENROUTER_MODEL",
    "PARSING_STRICT",
    "METEO_PARSING_STRICT",
    "METEO_HISTORICAL_SOURCE",
    "METEO_HISTORY_YEARS",
    "METEO_OPENROUTER_BASE_URL",
)


class TestConfig(unittest.TestCase):
    def setUp(self):
        self._saved = {k: os.environ.pop(k) for k in _ENV_KEYS if k in os.environ}

    def tearDown(self):
        for k in _ENV_KEYS:
            os.environ.pop(k, None)
        os.environ.update(self._saved)

    def test_settings_defaults(self):
        s = Settings()
        self.assertIsNone(s.openrouter_api_key)
        self.assertEqual(s.openrouter_model, "openrouter/auto")
        self.assertFalse(s.parsing_strict)
        self.assertEqual(s.historical_source, "nasa_power")
        self.assertEqual(s.history_years, 10)
        self.assertEqual(s.forecast_horizon_days, 16)
        self.assertEqual(s.forecast_weight, 0.7)
        self.assertEqual(s.historical_weight, 0.3)
        self.assertEqual(s.outdoor_risk_multiplier, 1.15)

    def test_unprefixed_provider_variables_are_read(self):
        os.environ["OPENROUTER_API_KEY"] = "sk-test"
        os.environ["OPENROUTER_MODEL"] = "mistralai/mistral-small"
        os.environ["PARSING_STRICT"] = "true"
        s = Settings()
        self.assertEqual(s.openrouter_api_key, "sk-test")
        self.assertEqual(s.openrouter_model, "mistralai/mistral-small")
        self.assertTrue(s.parsing_strict)

    def test_prefixed_env_override(self):
        os.environ["METEO_HISTORICAL_SOURCE"] = "ERA5"
        os.environ["METEO_HISTORY_YEARS"] = "5"
        os.environ["METEO_OPENROUTER_BASE_URL"] = "http://example.com/api/"
        s = Settings()
        self.assertEqual(s.historical_source, "era5")
        self.assertEqual(s.history_years, 5)
        self.assertEqual(s.openrouter_base_url, "http://example.com/api")

    def test_unknown_historical_source_rejected(self):
        os.environ["METEO_HISTORICAL_SOURCE"] = "noaa"
        with self.assertRaises(ValidationError):
            Settings()


if __name__ == "__main__":
    unittest.main()
