from __future__ import annotations

from dataclasses import dataclass

from telegram import Update


@dataclass(frozen=True)
class Callback:
    flow: str
    kind: str
    value: str


def parse_cb(data: str | None) -> Callback | None:
    # Format: flow:kind:value
    parts = (data or "").split(":", 2)
    if len(parts) != 3:
        return None
    return Callback(flow=parts[0], kind=parts[1], value=parts[2])


@dataclass(frozen=True)
class Event:
    """Transport-neutral inbound event bound to one user."""

    user_id: int
    chat_id: int
    text: str | None = None
    location: tuple[float, float] | None = None
    callback_data: str | None = None
    # For callbacks: the message carrying the pressed button.
    message_id: int | None = None
    first_name: str = ""
    last_name: str = ""
    language: str | None = None


def event_from_update(update: Update) -> Event | None:
    user = update.effective_user
    chat = update.effective_chat
    if not user or not chat:
        return None
    q = update.callback_query
    msg = update.effective_message
    location = None
    if not q and msg and msg.location:
        location = (msg.location.latitude, msg.location.longitude)
    return Event(
        user_id=user.id,
        chat_id=chat.id,
        text=None if q or not msg else msg.text,
        location=location,
        callback_data=q.data if q else None,
        message_id=msg.message_id if msg else None,
        first_name=user.first_name or "",
        last_name=user.last_name or "",
        language=user.language_code,
    )
