from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assistant_bot.core.i18n import normalize_lang
from assistant_bot.db.models import UNIT_SYSTEMS, Note, User, utcnow
from assistant_bot.db.session import get_session


logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


class UserNotFoundError(StoreError):
    pass


def new_user(
    user_id: int,
    *,
    first_name: str = "",
    last_name: str = "",
    language: str | None = None,
    now_utc: datetime | None = None,
) -> User:
    """A fresh, unsaved user record with onboarding defaults."""
    return User(
        id=user_id,
        name=f"{first_name} {last_name}".strip(),
        city="",
        country="",
        phone="",
        language=normalize_lang(language),
        units="metric",
        is_active=True,
        joined_at=now_utc or utcnow(),
    )


def _check_units(user: User) -> None:
    if user.units not in UNIT_SYSTEMS:
        raise ValueError(f"units must be one of {UNIT_SYSTEMS}, got {user.units!r}")


@contextmanager
def _session(op: str) -> Iterator[Session]:
    try:
        with get_session() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error("%s failed: %s", op, e)
        raise StoreError(f"{op} failed") from e


class UserStore:
    """CRUD over users and their notes, keyed by the Telegram user id."""

    # Users

    def get_users(self) -> list[User]:
        with _session("get_users") as session:
            return list(session.execute(select(User).order_by(User.joined_at)).scalars())

    def get_user(self, user_id: int) -> User:
        with _session("get_user") as session:
            user = session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(f"user {user_id} not found")
        return user

    def is_known_user(self, user_id: int) -> bool:
        with _session("is_known_user") as session:
            return session.get(User, user_id) is not None

    def add_user(self, user: User) -> User:
        _check_units(user)
        with _session("add_user") as session:
            session.add(user)
            session.flush()
        logger.info("Added user %s", user.id)
        return user

    def update_user(self, user: User) -> User:
        _check_units(user)
        with _session("update_user") as session:
            if session.get(User, user.id) is None:
                raise UserNotFoundError(f"user {user.id} not found")
            merged = session.merge(user)
            session.flush()
        return merged

    def deactivate_user(self, user_id: int) -> None:
        with _session("deactivate_user") as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(f"user {user_id} not found")
            user.is_active = False

    # Notes

    def get_user_notes(self, user_id: int) -> list[Note]:
        with _session("get_user_notes") as session:
            return list(
                session.execute(
                    select(Note).where(Note.user_id == user_id).order_by(Note.created_at, Note.id)
                ).scalars()
            )

    def add_note(self, user_id: int, text: str, *, now_utc: datetime | None = None) -> Note:
        with _session("add_note") as session:
            note = Note(text=text, user_id=user_id, created_at=now_utc or utcnow())
            session.add(note)
            session.flush()
        logger.info("Added note %s for user %s", note.id, user_id)
        return note

    def update_note(self, note_id: int, *, user_id: int, text: str) -> Note:
        with _session("update_note") as session:
            note = session.get(Note, note_id)
            if note is None or note.user_id != user_id:
                raise StoreError(f"note {note_id} not found")
            note.text = text
            session.flush()
        return note

    def delete_note(self, note_id: int, *, user_id: int) -> None:
        with _session("delete_note") as session:
            note = session.get(Note, note_id)
            if note is None or note.user_id != user_id:
                raise StoreError(f"note {note_id} not found")
            session.delete(note)
