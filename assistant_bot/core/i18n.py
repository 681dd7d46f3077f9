from __future__ import annotations

from typing import Literal

Lang = Literal["en", "ru"]


def normalize_lang(v: str | None) -> Lang:
    vv = (v or "").strip().lower()
    if vv == "ru":
        return "ru"
    return "en"


STRINGS: dict[Lang, dict[str, str]] = {
    "en": {
        # Common
        "common.cancelled": "Cancelled.",
        "common.nothing_to_cancel": "Nothing to cancel.",
        "common.not_implemented": "Not implemented yet.",
        "common.error": "An error occurred. Please try again later.",
        "common.start_over": "Sorry, I didn't understand that. Please start again with /start",
        "common.use_help": "Unknown command. Use /help to see what I can do.",
        # Start / help
        "start.greeting": "Hello {name}, I'm here to help you!",
        "start.welcome_back": "Hello {name}, welcome back!",
        "start.register_first": "Please use /start first.",
        "help.text": (
            "Personal Assistant Bot\n\n"
            "/weather - Current weather for your location\n"
            "/inspire - Inspirational quote\n"
            "/notes - Manage personal notes\n"
            "/location - Change your location and units\n"
            "/brief - Summary of upcoming activities\n"
            "/remind - Add a reminder\n"
            "/calendar - Manage calendar\n"
            "/request - Request new features\n"
            "/cancel - Cancel the current step"
        ),
        # Location flow
        "location.request": "To provide you with weather updates, can I use your location?",
        "location.share_btn": "📍 Share Location",
        "location.manual_btn": "✏️ Manual Input",
        "location.send_pin": "Please send me your location from the pin menu",
        "location.send_btn": "📍 Send my location",
        "location.hint": "Please share your location, or tap Manual Input.",
        "location.lookup_failed": "Error getting location information. Please try again later.",
        "location.found": "Your location: {city}, {country}.",
        "location.busy": "Please finish the current step or /cancel it first.",
        "city.prompt": "Please enter your city:",
        "country.prompt": "Please enter your country:",
        "units.prompt": "Great! Now, do you prefer metric (Celsius) or imperial (Fahrenheit) units?",
        "units.invalid": "Invalid input. Please select from the options provided.",
        "units.metric": "Metric (Celsius)",
        "units.imperial": "Imperial (Fahrenheit)",
        "confirm.summary": "Please confirm your details:\nCity: {city}\nCountry: {country}\nUnits: {units}",
        "confirm.confirm_btn": "Confirm",
        "confirm.cancel_btn": "Cancel",
        "confirm.invalid": "Please choose Confirm or Cancel.",
        "confirm.saved": "Your information has been saved. Welcome!",
        "confirm.cancelled": "Onboarding cancelled. You can start again with /start",
        "confirm.save_failed": "Error updating user information. Please try again later.",
        # Weather
        "weather.report": (
            "Temperature: {temp}\nFeels Like: {feels_like}\nConditions: {description}\n"
            "UV Index: {uv_index}\nWind: {wind}\nPrecipitation: {precipitation}\n"
            "Humidity: {humidity}\nPressure: {pressure}\nClouds: {clouds}\n"
            "Visibility: {visibility}\nCity: {city}\nCountry: {country}\nUnits: {units}"
        ),
        "weather.no_location": "I don't know your location yet. Set it with /location.",
        "weather.failed": "Error getting weather. Please try again later.",
        # Quotes
        "quote.failed": "Error getting quote. Please try again later.",
        "quote.save_btn": "💾 Save to Notes",
        # Notes
        "notes.title": "Your Notes:\n-------------\n\n",
        "notes.empty": "You have no notes yet.",
        "notes.saved": "Saved! Check with /notes",
        "notes.add_btn": "➕ Add",
        "notes.edit_btn": "✏️ Edit",
        "notes.delete_btn": "🗑 Delete",
        "notes.share_btn": "📤 Share",
        "notes.add_prompt": "Send me your note",
        "notes.edit_prompt": "Send me (#) of the note you want to edit",
        "notes.delete_prompt": "Send me (#) of the note you want to delete",
        "notes.share_prompt": "Send me (#) of the note you want to share",
        "notes.empty_text": "The note is empty. Send me your note",
        "notes.bad_index": "Please send the number (#) of one of your notes.",
        "notes.unsupported": "Unsupported action.",
    },
    "ru": {
        # Common
        "common.cancelled": "Отменено.",
        "common.nothing_to_cancel": "Нечего отменять.",
        "common.not_implemented": "Пока не реализовано.",
        "common.error": "Произошла ошибка. Попробуйте позже.",
        "common.start_over": "Извините, я не понял. Начните заново с /start",
        "common.use_help": "Неизвестная команда. Используйте /help.",
        # Start / help
        "start.greeting": "Привет, {name}! Я здесь, чтобы помочь.",
        "start.welcome_back": "Привет, {name}, с возвращением!",
        "start.register_first": "Сначала используйте /start.",
        "help.text": (
            "Персональный ассистент\n\n"
            "/weather - Погода в вашем городе\n"
            "/inspire - Вдохновляющая цитата\n"
            "/notes - Личные заметки\n"
            "/location - Изменить город и единицы\n"
            "/brief - Сводка предстоящих дел\n"
            "/remind - Добавить напоминание\n"
            "/calendar - Календарь\n"
            "/request - Предложить функцию\n"
            "/cancel - Отменить текущий шаг"
        ),
        # Location flow
        "location.request": "Чтобы присылать прогноз погоды, можно узнать ваше местоположение?",
        "location.share_btn": "📍 Отправить местоположение",
        "location.manual_btn": "✏️ Ввести вручную",
        "location.send_pin": "Отправьте местоположение через меню со скрепкой",
        "location.send_btn": "📍 Отправить моё местоположение",
        "location.hint": "Отправьте местоположение или нажмите «Ввести вручную».",
        "location.lookup_failed": "Не удалось определить местоположение. Попробуйте позже.",
        "location.found": "Ваше местоположение: {city}, {country}.",
        "location.busy": "Сначала завершите текущий шаг или отмените его: /cancel.",
        "city.prompt": "Введите ваш город:",
        "country.prompt": "Введите вашу страну:",
        "units.prompt": "Отлично! Какие единицы удобнее: метрические (Цельсий) или имперские (Фаренгейт)?",
        "units.invalid": "Неверный ввод. Выберите один из вариантов.",
        "units.metric": "Метрические (Цельсий)",
        "units.imperial": "Имперские (Фаренгейт)",
        "confirm.summary": "Подтвердите данные:\nГород: {city}\nСтрана: {country}\nЕдиницы: {units}",
        "confirm.confirm_btn": "Подтвердить",
        "confirm.cancel_btn": "Отмена",
        "confirm.invalid": "Выберите «Подтвердить» или «Отмена».",
        "confirm.saved": "Данные сохранены. Добро пожаловать!",
        "confirm.cancelled": "Настройка отменена. Начните заново с /start",
        "confirm.save_failed": "Не удалось сохранить данные. Попробуйте позже.",
        # Weather
        "weather.report": (
            "Температура: {temp}\nОщущается как: {feels_like}\nУсловия: {description}\n"
            "УФ-индекс: {uv_index}\nВетер: {wind}\nОсадки: {precipitation}\n"
            "Влажность: {humidity}\nДавление: {pressure}\nОблачность: {clouds}\n"
            "Видимость: {visibility}\nГород: {city}\nСтрана: {country}\nЕдиницы: {units}"
        ),
        "weather.no_location": "Я ещё не знаю вашего города. Укажите его: /location.",
        "weather.failed": "Не удалось получить погоду. Попробуйте позже.",
        # Quotes
        "quote.failed": "Не удалось получить цитату. Попробуйте позже.",
        "quote.save_btn": "💾 В заметки",
        # Notes
        "notes.title": "Ваши заметки:\n-------------\n\n",
        "notes.empty": "Заметок пока нет.",
        "notes.saved": "Сохранено! Смотрите /notes",
        "notes.add_btn": "➕ Добавить",
        "notes.edit_btn": "✏️ Изменить",
        "notes.delete_btn": "🗑 Удалить",
        "notes.share_btn": "📤 Поделиться",
        "notes.add_prompt": "Отправьте текст заметки",
        "notes.edit_prompt": "Отправьте номер (#) заметки для изменения",
        "notes.delete_prompt": "Отправьте номер (#) заметки для удаления",
        "notes.share_prompt": "Отправьте номер (#) заметки, чтобы поделиться",
        "notes.empty_text": "Заметка пустая. Отправьте текст заметки",
        "notes.bad_index": "Отправьте номер (#) одной из ваших заметок.",
        "notes.unsupported": "Неподдерживаемое действие.",
    },
}


def t(locale: str | None, key: str, **kwargs) -> str:
    ll = normalize_lang(locale)
    template = STRINGS.get(ll, {}).get(key) or STRINGS["en"].get(key) or key
    try:
        return template.format(**kwargs)
    except Exception:
        # If formatting fails, return raw template to avoid crashing the bot.
        return template


def units_label(lang: str | None, units: str | None) -> str:
    if (units or "").strip().lower() == "imperial":
        return t(lang, "units.imperial")
    return t(lang, "units.metric")


def units_from_label(text: str | None) -> str | None:
    """Map a units keyboard label (any language) back to `metric`/`imperial`."""
    vv = (text or "").strip()
    for strings in STRINGS.values():
        if vv == strings["units.metric"]:
            return "metric"
        if vv == strings["units.imperial"]:
            return "imperial"
    return None


def is_label(text: str | None, key: str) -> bool:
    vv = (text or "").strip()
    return any(vv == strings[key] for strings in STRINGS.values())
