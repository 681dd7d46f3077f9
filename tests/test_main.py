import types

import pytest
from telegram.error import NetworkError

from assistant_bot import main as bot_main
from assistant_bot.core.config import Settings


class DummyApp:
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    async def initialize(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise NetworkError("connection refused")


@pytest.mark.asyncio
async def test_initialize_succeeds_after_transient_failures():
    app = DummyApp(failures=2)
    await bot_main._initialize_with_retry(app, retries=5, delay_s=0)
    assert app.calls == 3


@pytest.mark.asyncio
async def test_initialize_gives_up_after_retries():
    app = DummyApp(failures=100)
    with pytest.raises(bot_main.StartupError):
        await bot_main._initialize_with_retry(app, retries=5, delay_s=0)
    assert app.calls == 6


@pytest.mark.asyncio
async def test_initialize_without_retries_tries_once():
    app = DummyApp(failures=1)
    with pytest.raises(bot_main.StartupError):
        await bot_main._initialize_with_retry(app, retries=0, delay_s=0)
    assert app.calls == 1


def test_main_exits_without_token(monkeypatch):
    def fail():
        raise RuntimeError("TELEGRAM_BOT_TOKEN is required")

    monkeypatch.setattr(bot_main, "load_settings", fail)
    with pytest.raises(SystemExit) as exc:
        bot_main.main()
    assert exc.value.code == 1


def test_build_application_wires_handlers(tmp_path):
    settings = Settings(
        bot_token="123456:TEST-TOKEN",
        database_url=None,
        db_path=str(tmp_path / "a.db"),
        geoapify_api_key="geo-key",
        bot_api_server="http://localhost:8081",
        debug=False,
        provider_timeout_s=5.0,
        connect_retries=1,
        connect_retry_delay_s=0.0,
        state_ttl_hours=24,
        weather_base_url="https://weather.test",
        quote_url="https://quotes.test/api/",
        geocoding_base_url="https://geo.test/v1/geocode",
    )

    app = bot_main._build_application(settings)

    assert set(app.bot_data) == {"engine", "users", "providers"}
    assert app.bot.base_url.startswith("http://localhost:8081/bot")


class DummyUpdater:
    def __init__(self):
        self.running = False
        self.stopped = False

    async def start_polling(self, **kwargs):
        raise NetworkError("polling failed")

    async def stop(self):
        self.stopped = True


class DummyPollingApp:
    def __init__(self):
        self.updater = DummyUpdater()
        self.running = False
        self.calls = []

    async def start(self):
        self.running = True
        self.calls.append("start")

    async def stop(self):
        self.running = False
        self.calls.append("stop")

    async def shutdown(self):
        self.calls.append("shutdown")


@pytest.mark.asyncio
async def test_failed_polling_start_still_shuts_down(monkeypatch):
    app = DummyPollingApp()

    async def connected(app, *, retries, delay_s):
        return None

    monkeypatch.setattr(bot_main, "_build_application", lambda settings: app)
    monkeypatch.setattr(bot_main, "_initialize_with_retry", connected)
    settings = types.SimpleNamespace(connect_retries=0, connect_retry_delay_s=0)

    with pytest.raises(NetworkError):
        await bot_main._run_polling(settings)

    assert app.calls == ["start", "stop", "shutdown"]
    assert app.updater.stopped is False
