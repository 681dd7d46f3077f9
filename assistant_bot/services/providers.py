from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from assistant_bot.core.config import (
    DEFAULT_GEOCODING_BASE_URL,
    DEFAULT_QUOTE_URL,
    DEFAULT_WEATHER_BASE_URL,
)


logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    pass


class GeocodingError(ProviderError):
    pass


@dataclass(frozen=True)
class WeatherInfo:
    temp: str
    feels_like: str
    weather_description: str
    uv_index: str
    wind: str
    precipitation: str
    humidity: str
    pressure: str
    clouds: str
    visibility: str
    city: str
    country: str
    units: str


@dataclass(frozen=True)
class Quote:
    text: str
    author: str
    source: str
    url: str
    language: str


@dataclass(frozen=True)
class LocationInfo:
    country: str
    city: str
    state: str
    zip: str
    lat: float | None
    lon: float | None


def _is_imperial(units: str) -> bool:
    return (units or "").strip().lower() in ("imperial", "i")


def _s(row: dict, key: str) -> str:
    v = row.get(key)
    return "" if v is None else str(v)


def _float_or_none(v: Any) -> float | None:
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


class ProviderClient:
    """
    Stateless wrapper around the weather, quote and reverse-geocoding providers.

    Each call is a single GET with a bounded timeout and no retry.
    """

    def __init__(
        self,
        *,
        geocoding_api_key: str = "",
        weather_base_url: str = DEFAULT_WEATHER_BASE_URL,
        quote_url: str = DEFAULT_QUOTE_URL,
        geocoding_base_url: str = DEFAULT_GEOCODING_BASE_URL,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._geocoding_api_key = geocoding_api_key
        self._weather_base_url = weather_base_url.rstrip("/")
        self._quote_url = quote_url
        self._geocoding_base_url = geocoding_base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    async def _get_json(self, url: str, *, params: dict | None = None) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout_s),
                transport=self._transport,
                headers={"Accept": "application/json"},
            ) as client:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"GET {url} returned malformed JSON: {e}") from e

    async def fetch_weather(self, city: str, country: str, units: str) -> WeatherInfo | None:
        url = f"{self._weather_base_url}/{quote(country, safe='')}-{quote(city, safe='')}"
        try:
            data = await self._get_json(url, params={"format": "j1"})
        except ProviderError as e:
            logger.warning("Weather lookup failed for %s, %s: %s", city, country, e)
            return None

        rows = data.get("current_condition") if isinstance(data, dict) else None
        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            logger.info("No weather data found for %s, %s", city, country)
            return None
        row = rows[0]

        desc = ""
        descs = row.get("weatherDesc")
        if isinstance(descs, list) and descs and isinstance(descs[0], dict):
            desc = _s(descs[0], "value")

        if _is_imperial(units):
            temp, feels_like = _s(row, "temp_F"), _s(row, "FeelsLikeF")
            wind = f"{_s(row, 'windspeedMiles')} {_s(row, 'winddir16Point')}"
            precipitation, pressure = _s(row, "precipInches"), _s(row, "pressureInches")
            visibility = _s(row, "visibilityMiles")
        else:
            temp, feels_like = _s(row, "temp_C"), _s(row, "FeelsLikeC")
            wind = f"{_s(row, 'windspeedKmph')} {_s(row, 'winddir16Point')}"
            precipitation, pressure = _s(row, "precipMM"), _s(row, "pressure")
            visibility = _s(row, "visibility")

        return WeatherInfo(
            temp=temp,
            feels_like=feels_like,
            weather_description=desc,
            uv_index=_s(row, "uvIndex"),
            wind=wind.strip(),
            precipitation=precipitation,
            humidity=_s(row, "humidity"),
            pressure=pressure,
            clouds=_s(row, "cloudcover"),
            visibility=visibility,
            city=city,
            country=country,
            units=units,
        )

    async def fetch_quote(self, lang: str = "en") -> Quote | None:
        # The provider only serves English; `lang` is accepted for callers but not applied.
        try:
            data = await self._get_json(self._quote_url)
        except ProviderError as e:
            logger.warning("Quote lookup failed: %s", e)
            return None
        if not isinstance(data, dict):
            return None
        text = _s(data, "text").strip()
        if not text:
            return None
        return Quote(
            text=text,
            author=_s(data, "author").strip(),
            source="The Quote Hub",
            url=_s(data, "url"),
            language="en",
        )

    async def reverse_geocode(self, latitude: float, longitude: float) -> LocationInfo:
        try:
            data = await self._get_json(
                f"{self._geocoding_base_url}/reverse",
                params={"api_key": self._geocoding_api_key, "lat": latitude, "lon": longitude},
            )
        except ProviderError as e:
            raise GeocodingError(str(e)) from e

        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list) or not features:
            raise GeocodingError(f"no location found for {latitude}, {longitude}")
        props = features[0].get("properties") if isinstance(features[0], dict) else None
        if not isinstance(props, dict):
            raise GeocodingError("malformed geocoding feature")

        info = LocationInfo(
            country=_s(props, "country"),
            city=_s(props, "city"),
            state=_s(props, "state"),
            zip=_s(props, "postcode") or _s(props, "zip"),
            lat=_float_or_none(props.get("lat")),
            lon=_float_or_none(props.get("lon")),
        )
        if not (info.city or info.state) or not info.country:
            raise GeocodingError(f"no city or country at {latitude}, {longitude}")
        return info
