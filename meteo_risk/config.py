"""Application configuration pulled from environment variables via pydantic."""
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger, mask_secret
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the weather risk service."""
    model_config = SettingsConfigDict(env_prefix="METEO_", extra="ignore", populate_by_name=True)

    # Language-model extraction (OpenRouter chat completions)
    openrouter_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("METEO_OPENROUTER_API_KEY", "OPENROUTER_API_KEY"),
    )
    openrouter_model: str = Field(
        default="openrouter/auto",
        validation_alias=AliasChoices("METEO_OPENROUTER_MODEL", "OPENROUTER_MODEL"),
    )
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_app_title: str = "meteo-risk"
    openrouter_http_referer: str = "http://localhost:8000"
    parsing_strict: bool = Field(
        default=False,
        validation_alias=AliasChoices("METEO_PARSING_STRICT", "PARSING_STRICT"),
    )

    # Source selection and climatology
    historical_source: Literal["nasa_power", "era5"] = "nasa_power"
    history_years: int = Field(default=10, ge=1, le=40)
    forecast_horizon_days: int = 16
    default_days_ahead: int = 7
    rain_threshold_mm: float = 1.0

    # Blending constants (no documented derivation; kept tunable)
    forecast_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    historical_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    outdoor_risk_multiplier: float = Field(default=1.15, ge=1.0)

    # Upstream HTTP
    request_timeout_seconds: float = 10.0
    llm_timeout_seconds: float = 30.0
    geocoder_user_agent: str = "meteo-risk/1.0"
    geocoder_accept_language: str = "fr"
    http_cache_enabled: bool = True
    http_cache_ttl_seconds: int = 1800
    http_cache_name: str = "meteo_risk_http_cache"
    http_cache_prune_every: int = Field(default=200, ge=1)

    @field_validator("openrouter_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("historical_source", mode="before")
    @classmethod
    def lower_source_name(cls, v):
        """Accept NASA_POWER / ERA5 regardless of case."""
        return v.strip().lower() if isinstance(v, str) else v


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    dump = settings.model_dump()
    dump["openrouter_api_key"] = mask_secret(settings.openrouter_api_key)
    logger.debug("Loaded settings: %s", dump)
