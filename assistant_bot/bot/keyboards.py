from __future__ import annotations

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)

from assistant_bot.core.i18n import t


ReplyMarkup = InlineKeyboardMarkup | ReplyKeyboardMarkup | ReplyKeyboardRemove

def main_menu_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [
            ["/weather", "/inspire"],
            ["/notes", "/brief"],
            ["/help"],
        ],
        resize_keyboard=True,
        is_persistent=True,
    )


def location_request_kb(lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(t(lang, "location.share_btn"), callback_data="location:choice:share")],
            [InlineKeyboardButton(t(lang, "location.manual_btn"), callback_data="location:choice:manual")],
        ]
    )


def send_location_kb(lang: str) -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [[KeyboardButton(t(lang, "location.send_btn"), request_location=True)]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )


def units_kb(lang: str) -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [[t(lang, "units.metric")], [t(lang, "units.imperial")]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )


def confirm_kb(lang: str) -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [[t(lang, "confirm.confirm_btn")], [t(lang, "confirm.cancel_btn")]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )


def notes_menu_kb(lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(t(lang, "notes.add_btn"), callback_data="notes:action:add"),
                InlineKeyboardButton(t(lang, "notes.edit_btn"), callback_data="notes:action:edit"),
            ],
            [
                InlineKeyboardButton(t(lang, "notes.delete_btn"), callback_data="notes:action:delete"),
                InlineKeyboardButton(t(lang, "notes.share_btn"), callback_data="notes:action:share"),
            ],
        ]
    )


def save_to_notes_kb(lang: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(t(lang, "quote.save_btn"), callback_data="quote:save:note")]]
    )
