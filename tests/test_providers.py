import httpx
import pytest

from assistant_bot.services.providers import GeocodingError, ProviderClient


CURRENT_CONDITION = {
    "FeelsLikeC": "24",
    "FeelsLikeF": "75",
    "temp_C": "23",
    "temp_F": "73",
    "uvIndex": "6",
    "weatherDesc": [{"value": "Partly cloudy"}],
    "winddir16Point": "WNW",
    "winddirDegree": "290",
    "windspeedKmph": "15",
    "windspeedMiles": "9",
    "precipInches": "0.0",
    "precipMM": "0.1",
    "humidity": "65",
    "pressure": "1012",
    "pressureInches": "30",
    "cloudcover": "25",
    "visibility": "10",
    "visibilityMiles": "6",
    "observation_time": "09:12 AM",
}


def _client(handler, **kwargs) -> ProviderClient:
    return ProviderClient(
        geocoding_api_key="geo-key",
        weather_base_url="https://weather.test",
        quote_url="https://quotes.test/api/",
        geocoding_base_url="https://geo.test/v1/geocode",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_fetch_weather_metric_takes_location_from_arguments():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"current_condition": [CURRENT_CONDITION], "nearest_area": [{"areaName": [{"value": "Elsewhere"}]}]},
        )

    w = await _client(handler).fetch_weather("Jableh", "Syria", "metric")

    assert w is not None
    assert (w.city, w.country, w.units) == ("Jableh", "Syria", "metric")
    assert w.temp == "23"
    assert w.feels_like == "24"
    assert w.wind == "15 WNW"
    assert w.precipitation == "0.1"
    assert w.pressure == "1012"
    assert w.visibility == "10"
    assert w.weather_description == "Partly cloudy"
    assert seen[0].url.host == "weather.test"
    assert seen[0].url.path == "/Syria-Jableh"
    assert seen[0].url.params["format"] == "j1"


@pytest.mark.asyncio
@pytest.mark.parametrize("units", ["imperial", "i"])
async def test_fetch_weather_imperial_fields(units):
    def handler(request):
        return httpx.Response(200, json={"current_condition": [CURRENT_CONDITION]})

    w = await _client(handler).fetch_weather("Austin", "USA", units)

    assert w is not None
    assert w.temp == "73"
    assert w.feels_like == "75"
    assert w.wind == "9 WNW"
    assert w.precipitation == "0.0"
    assert w.pressure == "30"
    assert w.visibility == "6"


@pytest.mark.asyncio
async def test_fetch_weather_quotes_path_segments():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"current_condition": [CURRENT_CONDITION]})

    await _client(handler).fetch_weather("New York", "United States", "metric")

    assert seen[0].url.raw_path.startswith(b"/United%20States-New%20York")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"current_condition": []}),
        httpx.Response(200, json={}),
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.Response(503, json={"error": "unavailable"}),
    ],
)
async def test_fetch_weather_returns_none_on_missing_data(response):
    w = await _client(lambda request: response).fetch_weather("Jableh", "Syria", "metric")
    assert w is None


@pytest.mark.asyncio
async def test_fetch_weather_returns_none_on_network_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert await _client(handler).fetch_weather("Jableh", "Syria", "metric") is None


@pytest.mark.asyncio
async def test_fetch_quote_ignores_language_hint():
    def handler(request):
        assert str(request.url) == "https://quotes.test/api/"
        return httpx.Response(200, json={"text": "Simplicity is prerequisite for reliability.", "author": "Dijkstra"})

    q = await _client(handler).fetch_quote("ru")

    assert q is not None
    assert q.text == "Simplicity is prerequisite for reliability."
    assert q.author == "Dijkstra"
    assert q.language == "en"
    assert q.source == "The Quote Hub"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"text": "", "author": "Nobody"}),
        httpx.Response(500),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
async def test_fetch_quote_returns_none_on_failure(response):
    assert await _client(lambda request: response).fetch_quote() is None


@pytest.mark.asyncio
async def test_reverse_geocode_returns_first_feature():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "features": [
                    {
                        "properties": {
                            "country": "Syria",
                            "city": "Jableh",
                            "state": "Latakia Governorate",
                            "postcode": "",
                            "lat": 35.3615,
                            "lon": 35.9256,
                        }
                    },
                    {"properties": {"country": "Elsewhere", "city": "Other"}},
                ]
            },
        )

    loc = await _client(handler).reverse_geocode(35.3615, 35.9256)

    assert (loc.country, loc.city, loc.state) == ("Syria", "Jableh", "Latakia Governorate")
    assert loc.lat == pytest.approx(35.3615)
    assert loc.lon == pytest.approx(35.9256)
    assert seen[0].url.path == "/v1/geocode/reverse"
    assert seen[0].url.params["api_key"] == "geo-key"
    assert float(seen[0].url.params["lat"]) == pytest.approx(35.3615)
    assert float(seen[0].url.params["lon"]) == pytest.approx(35.9256)


@pytest.mark.asyncio
async def test_reverse_geocode_zero_features_raises():
    def handler(request):
        return httpx.Response(200, json={"type": "FeatureCollection", "features": []})

    with pytest.raises(GeocodingError):
        await _client(handler).reverse_geocode(0.0, 0.0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"message": "Invalid apiKey"}),
        httpx.Response(200, content=b"garbage"),
        httpx.Response(200, json={"features": [{"geometry": {}}]}),
    ],
)
async def test_reverse_geocode_failures_raise(response):
    with pytest.raises(GeocodingError):
        await _client(lambda request: response).reverse_geocode(1.0, 2.0)


@pytest.mark.asyncio
async def test_reverse_geocode_without_city_or_country_raises():
    def handler(request):
        return httpx.Response(
            200, json={"features": [{"properties": {"country": "", "city": "", "state": "", "lat": 0.0, "lon": 0.0}}]}
        )

    with pytest.raises(GeocodingError):
        await _client(handler).reverse_geocode(0.0, 0.0)


@pytest.mark.asyncio
async def test_reverse_geocode_falls_back_to_state():
    def handler(request):
        return httpx.Response(
            200, json={"features": [{"properties": {"country": "Syria", "state": "Latakia Governorate"}}]}
        )

    loc = await _client(handler).reverse_geocode(35.5, 35.8)
    assert (loc.city, loc.state, loc.country) == ("", "Latakia Governorate", "Syria")
