"""Centralised configuration for the FareFirst flight tool server."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings shared by the handler and scripts."""

    flights_api_key: str = Field(
        ...,
        description="API key sent as x-api-key on autosuggest and search calls.",
    )
    flights_api_base_url: HttpUrl = Field(
        "https://super.staging.net.in/api/v1/ss/v3/flights",
        description="Base URL of the flight search API (search/create lives below it).",
    )
    autosuggest_url: HttpUrl = Field(
        "https://super.staging.net.in/api/v1/ss/v3/autosuggest/flights",
        description="Airport/city autosuggest endpoint.",
    )
    flights_api_live: bool = True
    http_timeout_seconds: float = Field(8.0, gt=0.0, le=60.0)

    booking_url: HttpUrl = Field("https://farefirst.com")
    results_url: HttpUrl = Field("https://staging.net.in/flight-results/")

    default_market: str = Field("US", min_length=2, max_length=2)
    locale: str = "en-US"
    autosuggest_limit: int = Field(7, ge=1, le=20)
    max_itineraries: int = Field(10, ge=1, le=50)

    search_cache_size: int = Field(32, ge=1)
    search_cache_ttl_seconds: float = Field(600.0, gt=0.0)
    session_store_size: int = Field(256, ge=1)
    session_ttl_seconds: float = Field(900.0, gt=0.0)

    server_name: str = "FareFirst Flights"
    server_version: str = "2.0.0"
    protocol_version: str = "2024-11-05"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
