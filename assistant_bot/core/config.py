from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


DEFAULT_WEATHER_BASE_URL = "https://wttr.in"
DEFAULT_QUOTE_URL = "https://thequoteshub.com/api/"
DEFAULT_GEOCODING_BASE_URL = "https://api.geoapify.com/v1/geocode"


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str | None
    db_path: str
    geoapify_api_key: str
    bot_api_server: str | None
    debug: bool
    provider_timeout_s: float
    connect_retries: int
    connect_retry_delay_s: float
    state_ttl_hours: int
    weather_base_url: str
    quote_url: str
    geocoding_base_url: str


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def load_settings() -> Settings:
    # Supports running with either `.env` present or purely env-driven.
    load_dotenv(override=False)

    bot_token = _env("TELEGRAM_BOT_TOKEN")
    if not bot_token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is required (set it in environment or .env).")

    return Settings(
        bot_token=bot_token,
        database_url=_env("DATABASE_URL") or None,
        db_path=_env("DB_PATH", "assistant.db") or "assistant.db",
        geoapify_api_key=_env("GEOAPIFY_API_KEY"),
        bot_api_server=_env("BOT_API_SERVER").rstrip("/") or None,
        debug=_env("BOT_DEBUG").lower() == "true",
        provider_timeout_s=float(_env("PROVIDER_TIMEOUT_S", "30") or "30"),
        connect_retries=int(_env("BOT_CONNECT_RETRIES", "5") or "5"),
        connect_retry_delay_s=float(_env("BOT_CONNECT_RETRY_DELAY_S", "2") or "2"),
        state_ttl_hours=int(_env("STATE_TTL_HOURS", "24") or "24"),
        weather_base_url=_env("WEATHER_BASE_URL").rstrip("/") or DEFAULT_WEATHER_BASE_URL,
        quote_url=_env("QUOTE_URL") or DEFAULT_QUOTE_URL,
        geocoding_base_url=_env("GEOCODING_BASE_URL").rstrip("/") or DEFAULT_GEOCODING_BASE_URL,
    )
