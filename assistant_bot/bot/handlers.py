from __future__ import annotations

import logging

from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from assistant_bot.bot.engine import DialogueEngine
from assistant_bot.bot.flow_common import event_from_update
from assistant_bot.bot.keyboards import main_menu_keyboard, notes_menu_kb, save_to_notes_kb
from assistant_bot.core.i18n import t, units_label
from assistant_bot.services.providers import ProviderClient
from assistant_bot.services.users import StoreError, UserNotFoundError, UserStore


logger = logging.getLogger("assistant-bot")


def _lang(update: Update) -> str:
    if not update.effective_user:
        return "en"
    return update.effective_user.language_code or "en"


def _engine(context: ContextTypes.DEFAULT_TYPE) -> DialogueEngine:
    return context.bot_data["engine"]


def _users(context: ContextTypes.DEFAULT_TYPE) -> UserStore:
    return context.bot_data["users"]


def _providers(context: ContextTypes.DEFAULT_TYPE) -> ProviderClient:
    return context.bot_data["providers"]


# -----------------------
# Dialogue entry points
# -----------------------


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    event = event_from_update(update)
    if event and update.message:
        await _engine(context).start(event)


async def location_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    event = event_from_update(update)
    if event and update.message:
        await _engine(context).edit_location(event)


async def cancel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    event = event_from_update(update)
    if event and update.message:
        await _engine(context).cancel(event)


async def location_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    q = update.callback_query
    if not q:
        return
    await q.answer()
    event = event_from_update(update)
    if event:
        await _engine(context).location_choice(event)


async def notes_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    q = update.callback_query
    if not q:
        return
    await q.answer()
    event = event_from_update(update)
    if event:
        await _engine(context).notes_action(event)


async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    event = event_from_update(update)
    if event and update.message:
        await _engine(context).handle_message(event)


# -----------------------
# Stateless commands
# -----------------------


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.message:
        await update.message.reply_text(t(_lang(update), "help.text"), reply_markup=main_menu_keyboard())


async def weather(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.effective_user or not update.message:
        return
    lang = _lang(update)
    try:
        user = _users(context).get_user(update.effective_user.id)
    except UserNotFoundError:
        await update.message.reply_text(t(lang, "start.register_first"))
        return
    except StoreError:
        await update.message.reply_text(t(lang, "common.error"))
        return
    if not user.city or not user.country:
        await update.message.reply_text(t(lang, "weather.no_location"))
        return

    w = await _providers(context).fetch_weather(user.city, user.country, user.units)
    if w is None:
        await update.message.reply_text(t(lang, "weather.failed"))
        return
    await update.message.reply_text(
        t(
            lang,
            "weather.report",
            temp=w.temp,
            feels_like=w.feels_like,
            description=w.weather_description or "-",
            uv_index=w.uv_index,
            wind=w.wind,
            precipitation=w.precipitation,
            humidity=w.humidity,
            pressure=w.pressure,
            clouds=w.clouds,
            visibility=w.visibility,
            city=w.city,
            country=w.country,
            units=units_label(lang, w.units),
        )
    )


async def inspire(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.message:
        return
    lang = _lang(update)
    quote = await _providers(context).fetch_quote(lang)
    if quote is None:
        await update.message.reply_text(t(lang, "quote.failed"))
        return
    text = f"“{quote.text}”"
    if quote.author:
        text += f"\n— {quote.author}"
    # Plain text: quotes may contain Markdown control characters.
    await update.message.reply_text(text, reply_markup=save_to_notes_kb(lang))


async def notes(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not update.effective_user or not update.message:
        return
    lang = _lang(update)
    try:
        rows = _users(context).get_user_notes(update.effective_user.id)
    except StoreError:
        await update.message.reply_text(t(lang, "common.error"))
        return
    if not rows:
        body = t(lang, "notes.empty")
    else:
        body = t(lang, "notes.title") + "".join(f"{i}. {n.text}\n\n" for i, n in enumerate(rows, start=1))
    await update.message.reply_text(body, reply_markup=notes_menu_kb(lang))


async def save_to_notes_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    q = update.callback_query
    if not q or not update.effective_user:
        return
    await q.answer()
    lang = _lang(update)
    text = (q.message.text if q.message else "") or ""  # type: ignore[union-attr]
    if not text.strip():
        await q.message.reply_text(t(lang, "notes.empty_text"))  # type: ignore[union-attr]
        return
    try:
        _users(context).add_note(update.effective_user.id, text)
    except StoreError:
        await q.message.reply_text(t(lang, "common.error"))  # type: ignore[union-attr]
        return
    await q.message.reply_text(t(lang, "notes.saved"))  # type: ignore[union-attr]


async def _not_implemented(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if update.message:
        await update.message.reply_text(t(_lang(update), "common.not_implemented"))


def build_handlers(
    app: Application,
    *,
    engine: DialogueEngine,
    users: UserStore,
    providers: ProviderClient,
) -> None:
    app.bot_data["engine"] = engine
    app.bot_data["users"] = users
    app.bot_data["providers"] = providers

    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("location", location_command))
    app.add_handler(CommandHandler("cancel", cancel_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("weather", weather))
    app.add_handler(CommandHandler("inspire", inspire))
    app.add_handler(CommandHandler("notes", notes))
    # Calendar, reminders, briefs and feature requests are placeholders for now.
    for name in ("brief", "remind", "calendar", "request"):
        app.add_handler(CommandHandler(name, _not_implemented))

    app.add_handler(CallbackQueryHandler(location_callback, pattern=r"^location:"))
    app.add_handler(CallbackQueryHandler(notes_callback, pattern=r"^notes:"))
    app.add_handler(CallbackQueryHandler(save_to_notes_callback, pattern=r"^quote:save:"))

    app.add_handler(MessageHandler((filters.TEXT & ~filters.COMMAND) | filters.LOCATION, on_message))

    async def unknown(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message:
            await update.message.reply_text(t(_lang(update), "common.use_help"))

    app.add_handler(MessageHandler(filters.COMMAND, unknown))

    async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        # The update is dropped; polling continues.
        logger.exception("Unhandled error while processing update", exc_info=context.error)

    app.add_error_handler(on_error)
