from __future__ import annotations

import asyncio

import pytest

from assistant_bot.bot.engine import DialogueEngine
from assistant_bot.bot.flow_common import Event
from assistant_bot.core.state import MemoryStateStore
from assistant_bot.db.models import Note
from assistant_bot.services.providers import LocationInfo, Quote, WeatherInfo
from assistant_bot.services.users import StoreError, UserNotFoundError, new_user


USER_ID = 1001
CHAT_ID = 5005


class RecordingGateway:
    def __init__(self):
        self.sent = []
        self.deleted = []
        self._next_id = 100

    async def send_text(self, chat_id, text, *, reply_markup=None):
        self._next_id += 1
        self.sent.append((chat_id, text, reply_markup))
        return self._next_id

    async def delete_message(self, chat_id, message_id):
        self.deleted.append((chat_id, message_id))

    @property
    def texts(self):
        return [text for _, text, _ in self.sent]


class FakeUserStore:
    def __init__(self):
        self.users = {}
        self.notes = []
        self.added = []
        self.updated = []
        self.fail = set()

    def _maybe_fail(self, op):
        if op in self.fail:
            raise StoreError(f"{op} failed")

    def register(self, user_id=USER_ID, **fields):
        user = new_user(user_id, first_name="Ali", last_name="Hasan")
        for k, v in fields.items():
            setattr(user, k, v)
        self.users[user_id] = user
        return user

    def get_user(self, user_id):
        self._maybe_fail("get_user")
        if user_id not in self.users:
            raise UserNotFoundError(f"user {user_id} not found")
        return self.users[user_id]

    def is_known_user(self, user_id):
        self._maybe_fail("is_known_user")
        return user_id in self.users

    def add_user(self, user):
        self._maybe_fail("add_user")
        self.users[user.id] = user
        self.added.append(user)
        return user

    def update_user(self, user):
        self._maybe_fail("update_user")
        if user.id not in self.users:
            raise UserNotFoundError(f"user {user.id} not found")
        self.users[user.id] = user
        self.updated.append(user)
        return user

    def get_user_notes(self, user_id):
        self._maybe_fail("get_user_notes")
        return [n for n in self.notes if n.user_id == user_id]

    def add_note(self, user_id, text, *, now_utc=None):
        self._maybe_fail("add_note")
        note = Note(id=len(self.notes) + 1, text=text, user_id=user_id)
        self.notes.append(note)
        return note


class FakeProviders:
    def __init__(self):
        self.location = LocationInfo(
            country="Syria", city="Jableh", state="Latakia", zip="", lat=35.36, lon=35.92
        )
        self.geocode_error = None
        self.geocode_delay = 0.0
        self.geocode_calls = []
        self.weather = None
        self.weather_calls = []
        self.quote = Quote(text="Stay hungry.", author="Someone", source="The Quote Hub", url="", language="en")

    async def reverse_geocode(self, latitude, longitude):
        self.geocode_calls.append((latitude, longitude))
        if self.geocode_delay:
            await asyncio.sleep(self.geocode_delay)
        if self.geocode_error:
            raise self.geocode_error
        return self.location

    async def fetch_weather(self, city, country, units):
        self.weather_calls.append((city, country, units))
        return self.weather

    async def fetch_quote(self, lang="en"):
        return self.quote


def _sample_weather(**overrides) -> WeatherInfo:
    fields = dict(
        temp="20",
        feels_like="19",
        weather_description="Sunny",
        uv_index="5",
        wind="13 NW",
        precipitation="0.0",
        humidity="60",
        pressure="1015",
        clouds="0",
        visibility="10",
        city="Jableh",
        country="Syria",
        units="metric",
    )
    fields.update(overrides)
    return WeatherInfo(**fields)


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def users():
    return FakeUserStore()


@pytest.fixture
def providers():
    return FakeProviders()


@pytest.fixture
def states():
    return MemoryStateStore(ttl_hours=24)


@pytest.fixture
def engine(states, users, providers, gateway):
    return DialogueEngine(states=states, users=users, providers=providers, gateway=gateway)


@pytest.fixture
def make_event():
    def _make(text=None, *, location=None, callback_data=None, message_id=None, user_id=USER_ID):
        return Event(
            user_id=user_id,
            chat_id=CHAT_ID,
            text=text,
            location=location,
            callback_data=callback_data,
            message_id=message_id,
            first_name="Ali",
            last_name="Hasan",
            language="en",
        )

    return _make


@pytest.fixture
def weather_info():
    return _sample_weather
