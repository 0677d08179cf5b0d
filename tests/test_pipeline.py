import datetime as dt

import pytest

from meteo_risk.config import Settings
from meteo_risk.data_sources.base import CallableHistoricalSource
from meteo_risk.domain import Coordinate, DailyObservation, ForecastSample, ParsedIntent, PredictionQuery, PredictionSource, WindLabel
from meteo_risk.errors import ExtractionIncompleteError, InvalidRequestError, MissingCoordinatesError, PlaceNotFoundError
from meteo_risk.pipeline import PredictionPipeline

NOW = dt.datetime(2025, 10, 18, 9, 30, tzinfo=dt.timezone.utc)


class FakeGeocoder:
    def __init__(self, places=None):
        self.places = places or {}
        self.calls = []

    def geocode(self, place):
        self.calls.append(place)
        if place not in self.places:
            raise PlaceNotFoundError(place)
        lat, lon = self.places[place]
        return Coordinate(lat=lat, lon=lon)


class FakeWeather:
    """Records forecast and historical calls; history is rainy in 2 of 5 years."""

    def __init__(self, forecast=None, forecast_error=None):
        self.forecast = forecast if forecast is not None else ForecastSample(
            temp_c=17.04, wind_speed_ms=3.0, precip_prob_pct=80
        )
        self.forecast_error = forecast_error
        self.forecast_calls = []
        self.history_calls = []

    def fetch_forecast(self, lat, lon, date_iso):
        self.forecast_calls.append((lat, lon, date_iso))
        if self.forecast_error is not None:
            raise self.forecast_error
        return self.forecast

    def fetch_day(self, lat, lon, day):
        self.history_calls.append(day)
        rainy = day.year in (2024, 2022)
        return DailyObservation(precip_mm=4.0 if rainy else 0.0, temp_c=12.0, wind_ms=6.0)


def _extractor(intent=None):
    calls = []

    def extract(text, now):
        calls.append((text, now))
        return intent or ParsedIntent()

    extract.calls = calls
    return extract


def _pipeline(*, intent=None, places=None, weather=None, **settings_kwargs):
    settings_kwargs.setdefault("history_years", 5)
    settings = Settings(openrouter_api_key=None, **settings_kwargs)
    weather = weather or FakeWeather()
    geocoder = FakeGeocoder(places if places is not None else {"Paris": (48.8566, 2.3522)})
    extractor = _extractor(intent)
    pipeline = PredictionPipeline(
        settings,
        intent_extractor=extractor,
        geocoder=geocoder,
        forecast_fetch=weather.fetch_forecast,
        historical_source=CallableHistoricalSource(name="fake", day_fetcher=weather.fetch_day),
        clock=lambda: NOW,
    )
    return pipeline, geocoder, weather, extractor


@pytest.mark.asyncio
async def test_heuristic_fallback_near_future_blends_forecast_and_history():
    pipeline, geocoder, weather, extractor = _pipeline()

    result = await pipeline.predict(PredictionQuery(query="vacances à Paris le 20 octobre"))

    assert extractor.calls == [("vacances à Paris le 20 octobre", NOW)]
    assert geocoder.calls == ["Paris"]
    assert weather.forecast_calls == [(48.8566, 2.3522, "2025-10-20")]
    assert len(weather.history_calls) == 5
    # 0.7 * 80 + 0.3 * 40 = 68, inflated for "vacances"
    assert result.rain_risk_pct == 78
    assert result.temp_c == 17.0
    assert result.wind_label == WindLabel.FAIBLE
    assert result.source == PredictionSource.FORECAST_AND_HISTORICAL
    assert result.date == "2025-10-20"


@pytest.mark.asyncio
async def test_direct_coordinates_far_date_uses_history_only():
    pipeline, geocoder, weather, extractor = _pipeline()

    result = await pipeline.predict(PredictionQuery(lat=45.76, lon=4.84, date="2025-11-07"))

    assert extractor.calls == []
    assert geocoder.calls == []
    assert weather.forecast_calls == []
    assert result.source == PredictionSource.HISTORICAL
    assert result.rain_risk_pct == 40
    assert result.temp_c == 12.0
    assert result.wind_label == WindLabel.MODERE


@pytest.mark.asyncio
async def test_unresolvable_query_raises_before_weather_calls():
    pipeline, geocoder, weather, _ = _pipeline(places={})

    with pytest.raises(MissingCoordinatesError) as exc_info:
        await pipeline.predict(PredictionQuery(query="vacances à Zzyzx le 20 octobre"))

    assert exc_info.value.status_code == 400
    assert geocoder.calls == ["Zzyzx"]
    assert weather.forecast_calls == []
    assert weather.history_calls == []


@pytest.mark.asyncio
async def test_strict_mode_incomplete_extraction_stops_early():
    pipeline, geocoder, weather, _ = _pipeline(
        intent=ParsedIntent(date_iso="2025-10-20", activity="plage"),
        parsing_strict=True,
    )

    with pytest.raises(ExtractionIncompleteError) as exc_info:
        await pipeline.predict(PredictionQuery(query="plage à Paris le 20 octobre"))

    assert exc_info.value.status_code == 422
    assert exc_info.value.details == {"location": False, "dateISO": True, "activity": "plage"}
    assert geocoder.calls == []
    assert weather.forecast_calls == []
    assert weather.history_calls == []


@pytest.mark.asyncio
async def test_model_values_win_over_explicit_and_heuristic():
    pipeline, geocoder, weather, _ = _pipeline(
        intent=ParsedIntent(location="Lyon", date_iso="2025-10-25"),
        places={"Lyon": (45.76, 4.84), "Paris": (48.85, 2.35)},
    )

    result = await pipeline.predict(
        PredictionQuery(query="mariage à Paris le 20 octobre", date="2025-10-22", activity="sport")
    )

    assert geocoder.calls == ["Lyon"]
    assert result.date == "2025-10-25"
    # explicit activity beats the heuristic "mariage"; neither is an outdoor keyword
    assert result.rain_risk_pct == 68


@pytest.mark.asyncio
async def test_explicit_date_beats_heuristic_date():
    pipeline, _, _, _ = _pipeline()

    result = await pipeline.predict(PredictionQuery(query="à Paris le 20 octobre", date="22/10/2025"))

    assert result.date == "2025-10-22"


@pytest.mark.asyncio
async def test_missing_date_defaults_to_one_week_ahead():
    pipeline, _, weather, _ = _pipeline()

    result = await pipeline.predict(PredictionQuery(query="Paris"))

    assert result.date == "2025-10-25"
    assert weather.forecast_calls[0][2] == "2025-10-25"


@pytest.mark.asyncio
async def test_invalid_explicit_date_rejected_before_any_call():
    pipeline, geocoder, weather, extractor = _pipeline()

    with pytest.raises(InvalidRequestError):
        await pipeline.predict(PredictionQuery(query="à Paris", date="bientôt"))

    assert extractor.calls == []
    assert geocoder.calls == []
    assert weather.history_calls == []


@pytest.mark.asyncio
async def test_forecast_failure_falls_back_to_history():
    weather = FakeWeather(forecast_error=RuntimeError("gfs down"))
    pipeline, _, _, _ = _pipeline(weather=weather)

    result = await pipeline.predict(PredictionQuery(query="à Paris le 20 octobre"))

    assert result.source == PredictionSource.FORECAST_AND_HISTORICAL
    assert result.rain_risk_pct == 40
    assert result.temp_c == 12.0


@pytest.mark.asyncio
async def test_geocoding_chain_falls_through_to_candidate():
    pipeline, geocoder, _, _ = _pipeline(
        intent=ParsedIntent(location="Pariss", date_iso="2025-10-20"),
        places={"Paris": (48.85, 2.35)},
    )

    await pipeline.predict(PredictionQuery(query="balade à Paris"))

    assert geocoder.calls == ["Pariss", "Paris"]


@pytest.mark.asyncio
async def test_today_uses_history_only():
    pipeline, _, weather, _ = _pipeline()

    result = await pipeline.predict(PredictionQuery(lat=48.85, lon=2.35, date="2025-10-18"))

    assert weather.forecast_calls == []
    assert result.source == PredictionSource.HISTORICAL
