from __future__ import annotations

import asyncio
import logging
import signal
import sys

from sqlalchemy.exc import SQLAlchemyError
from telegram.error import TelegramError
from telegram.ext import Application

from assistant_bot.bot.engine import DialogueEngine
from assistant_bot.bot.gateway import TelegramGateway
from assistant_bot.bot.handlers import build_handlers
from assistant_bot.core.config import Settings, load_settings
from assistant_bot.core.state import MemoryStateStore
from assistant_bot.db.session import check_connection, dispose_db, init_db
from assistant_bot.services.providers import ProviderClient
from assistant_bot.services.users import UserStore


logging.basicConfig(
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger("assistant-bot")


class StartupError(RuntimeError):
    pass


def _build_application(settings: Settings) -> Application:
    builder = Application.builder().token(settings.bot_token).concurrent_updates(True)
    if settings.bot_api_server:
        builder = builder.base_url(f"{settings.bot_api_server}/bot").base_file_url(
            f"{settings.bot_api_server}/file/bot"
        )
    app = builder.build()

    users = UserStore()
    providers = ProviderClient(
        geocoding_api_key=settings.geoapify_api_key,
        weather_base_url=settings.weather_base_url,
        quote_url=settings.quote_url,
        geocoding_base_url=settings.geocoding_base_url,
        timeout_s=settings.provider_timeout_s,
    )
    engine = DialogueEngine(
        states=MemoryStateStore(ttl_hours=settings.state_ttl_hours),
        users=users,
        providers=providers,
        gateway=TelegramGateway(app.bot),
    )
    build_handlers(app, engine=engine, users=users, providers=providers)
    return app


async def _initialize_with_retry(app: Application, *, retries: int, delay_s: float) -> None:
    """Connect to Telegram (`getMe`), retrying a fixed number of times before giving up."""
    attempts_left = retries
    while True:
        try:
            await app.initialize()
        except TelegramError as e:
            logger.error("Error launching bot: %s", e)
            if attempts_left <= 0:
                raise StartupError("Could not connect to Telegram") from e
            attempts_left -= 1
            logger.info("Retrying in %.1fs (%s attempts left)...", delay_s, attempts_left)
            await asyncio.sleep(delay_s)
        else:
            logger.info("Bot launched")
            return


async def _run_polling(settings: Settings) -> None:
    app = _build_application(settings)
    await _initialize_with_retry(
        app, retries=settings.connect_retries, delay_s=settings.connect_retry_delay_s
    )
    try:
        await app.start()
        await app.updater.start_polling(allowed_updates=["message", "callback_query"])  # type: ignore[union-attr]

        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Some platforms (e.g., Windows) don't support signal handlers in asyncio.
                pass

        await stop_event.wait()
    finally:
        # Stop taking new updates first; handlers already running finish during shutdown.
        logger.info("Shutting down...")
        if app.updater and app.updater.running:
            await app.updater.stop()
        if app.running:
            await app.stop()
        await app.shutdown()


def main() -> None:
    try:
        settings = load_settings()
    except RuntimeError as e:
        logger.error("%s", e)
        sys.exit(1)

    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        init_db(settings.database_url, settings.db_path)
        check_connection()
    except SQLAlchemyError as e:
        logger.error("Database is unavailable: %s", e)
        sys.exit(1)

    logger.info("Starting bot (polling)...")
    try:
        asyncio.run(_run_polling(settings))
    except StartupError as e:
        logger.critical("%s", e)
        sys.exit(1)
    finally:
        dispose_db()


if __name__ == "__main__":
    main()
