from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo


UTC = ZoneInfo("UTC")


def _as_utc_aware(dt: datetime) -> datetime:
    """
    Normalize datetimes for safe comparisons.

    - If `dt` is naive, we assume it is UTC and attach UTC tzinfo.
    - If `dt` is aware, we convert it to UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class Step(str, Enum):
    IDLE = "idle"
    WAITING_FOR_LOCATION = "waiting_for_location"
    WAITING_FOR_CITY = "waiting_for_city"
    WAITING_FOR_COUNTRY = "waiting_for_country"
    WAITING_FOR_UNITS = "waiting_for_units"
    WAITING_FOR_CONFIRMATION = "waiting_for_confirmation"
    WAITING_FOR_NOTE_ADD = "waiting_for_note_add"
    WAITING_FOR_NOTE_EDIT_ID = "waiting_for_note_edit_id"
    WAITING_FOR_NOTE_DELETE_ID = "waiting_for_note_delete_id"
    WAITING_FOR_NOTE_SHARE_ID = "waiting_for_note_share_id"


LOCATION_STEPS = frozenset(
    {
        Step.WAITING_FOR_LOCATION,
        Step.WAITING_FOR_CITY,
        Step.WAITING_FOR_COUNTRY,
        Step.WAITING_FOR_UNITS,
        Step.WAITING_FOR_CONFIRMATION,
    }
)
NOTE_STEPS = frozenset(
    {
        Step.WAITING_FOR_NOTE_ADD,
        Step.WAITING_FOR_NOTE_EDIT_ID,
        Step.WAITING_FOR_NOTE_DELETE_ID,
        Step.WAITING_FOR_NOTE_SHARE_ID,
    }
)


@dataclass(frozen=True)
class LocationFlow:
    """Pending location details; written to the user store only on confirmation."""

    previous_message_id: int | None = None
    city: str = ""
    country: str = ""
    units: str | None = None


@dataclass(frozen=True)
class NoteFlow:
    note_index: int | None = None


@dataclass(frozen=True)
class ConversationState:
    step: Step
    arg: LocationFlow | NoteFlow | None = None

    def __post_init__(self) -> None:
        if self.step == Step.IDLE:
            if self.arg is not None:
                raise ValueError("idle state carries no argument")
        elif self.step in LOCATION_STEPS:
            if not isinstance(self.arg, LocationFlow):
                raise ValueError(f"{self.step.value} requires a LocationFlow argument")
        elif self.step in NOTE_STEPS:
            if not isinstance(self.arg, NoteFlow):
                raise ValueError(f"{self.step.value} requires a NoteFlow argument")

    @property
    def is_idle(self) -> bool:
        return self.step == Step.IDLE

    @property
    def location(self) -> LocationFlow:
        if not isinstance(self.arg, LocationFlow):
            raise ValueError(f"{self.step.value} is not a location step")
        return self.arg

    @property
    def note(self) -> NoteFlow:
        if not isinstance(self.arg, NoteFlow):
            raise ValueError(f"{self.step.value} is not a note step")
        return self.arg


IDLE = ConversationState(step=Step.IDLE)


class StateStore(ABC):
    """Per-user dialogue state. `load` never returns None: no dialogue reads as `IDLE`."""

    @abstractmethod
    def load(self, user_id: int, *, now_utc: datetime | None = None) -> ConversationState: ...

    @abstractmethod
    def save(self, user_id: int, state: ConversationState, *, now_utc: datetime | None = None) -> None: ...

    @abstractmethod
    def clear(self, user_id: int) -> None: ...

    @abstractmethod
    def locked(self, user_id: int):
        """Async context manager serializing event handling for one user."""


@dataclass
class _Entry:
    state: ConversationState
    expires_at: datetime


@dataclass
class _UserLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class MemoryStateStore(StateStore):
    def __init__(self, *, ttl_hours: int = 24) -> None:
        self._ttl = timedelta(hours=ttl_hours)
        self._entries: dict[int, _Entry] = {}
        self._locks: dict[int, _UserLock] = {}
        # Guards both maps; never held across an await.
        self._guard = threading.Lock()

    def load(self, user_id: int, *, now_utc: datetime | None = None) -> ConversationState:
        now = _as_utc_aware(now_utc or datetime.now(tz=UTC))
        with self._guard:
            entry = self._entries.get(user_id)
            if entry is None:
                return IDLE
            if entry.expires_at < now:
                del self._entries[user_id]
                return IDLE
            return entry.state

    def save(self, user_id: int, state: ConversationState, *, now_utc: datetime | None = None) -> None:
        if state.is_idle:
            self.clear(user_id)
            return
        now = _as_utc_aware(now_utc or datetime.now(tz=UTC))
        with self._guard:
            self._entries[user_id] = _Entry(state=state, expires_at=now + self._ttl)

    def clear(self, user_id: int) -> None:
        with self._guard:
            self._entries.pop(user_id, None)

    @asynccontextmanager
    async def locked(self, user_id: int) -> AsyncIterator[None]:
        with self._guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = _UserLock()
            entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._locks.pop(user_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
