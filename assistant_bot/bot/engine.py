from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from telegram import ReplyKeyboardRemove

from assistant_bot.bot.flow_common import Event, parse_cb
from assistant_bot.bot.gateway import Gateway
from assistant_bot.bot.keyboards import (
    ReplyMarkup,
    confirm_kb,
    location_request_kb,
    main_menu_keyboard,
    send_location_kb,
    units_kb,
)
from assistant_bot.core.i18n import is_label, t, units_from_label, units_label
from assistant_bot.core.state import (
    ConversationState,
    LocationFlow,
    NoteFlow,
    NOTE_STEPS,
    StateStore,
    Step,
)
from assistant_bot.services.providers import ProviderClient, ProviderError
from assistant_bot.services.users import StoreError, UserNotFoundError, UserStore, new_user


logger = logging.getLogger(__name__)

StepHandler = Callable[[Event, ConversationState], Awaitable[None]]

_NOTE_ACTIONS: dict[str, tuple[Step, str]] = {
    "add": (Step.WAITING_FOR_NOTE_ADD, "notes.add_prompt"),
    "edit": (Step.WAITING_FOR_NOTE_EDIT_ID, "notes.edit_prompt"),
    "delete": (Step.WAITING_FOR_NOTE_DELETE_ID, "notes.delete_prompt"),
    "share": (Step.WAITING_FOR_NOTE_SHARE_ID, "notes.share_prompt"),
}


class DialogueEngine:
    """
    Per-user state machine for onboarding, location capture and note sub-flows.

    Every entry point takes the user's lock from the state store for the whole
    event, so a user's events are handled one at a time. Store and provider
    failures abort the current transition and leave the saved state untouched.
    """

    def __init__(
        self,
        *,
        states: StateStore,
        users: UserStore,
        providers: ProviderClient,
        gateway: Gateway,
    ) -> None:
        self._states = states
        self._users = users
        self._providers = providers
        self._gateway = gateway
        self._steps: dict[Step, StepHandler] = {
            Step.WAITING_FOR_LOCATION: self._on_location,
            Step.WAITING_FOR_CITY: self._on_city,
            Step.WAITING_FOR_COUNTRY: self._on_country,
            Step.WAITING_FOR_UNITS: self._on_units,
            Step.WAITING_FOR_CONFIRMATION: self._on_confirmation,
            Step.WAITING_FOR_NOTE_ADD: self._on_note_text,
            Step.WAITING_FOR_NOTE_EDIT_ID: self._on_note_index,
            Step.WAITING_FOR_NOTE_DELETE_ID: self._on_note_index,
            Step.WAITING_FOR_NOTE_SHARE_ID: self._on_note_index,
        }

    # -----------------------
    # Helpers
    # -----------------------

    async def _reply(
        self,
        event: Event,
        key: str,
        *,
        reply_markup: ReplyMarkup | None = None,
        **kwargs,
    ) -> int:
        return await self._gateway.send_text(
            event.chat_id, t(event.language, key, **kwargs), reply_markup=reply_markup
        )

    def _transition(self, event: Event, current: ConversationState, new: ConversationState) -> None:
        logger.debug("user %s: %s -> %s", event.user_id, current.step.value, new.step.value)
        self._states.save(event.user_id, new)

    def _finish(self, event: Event, current: ConversationState) -> None:
        logger.debug("user %s: %s -> idle", event.user_id, current.step.value)
        self._states.clear(event.user_id)

    async def _request_location(self, event: Event, current: ConversationState) -> None:
        lang = event.language or "en"
        message_id = await self._reply(event, "location.request", reply_markup=location_request_kb(lang))
        self._transition(
            event,
            current,
            ConversationState(Step.WAITING_FOR_LOCATION, LocationFlow(previous_message_id=message_id)),
        )

    # -----------------------
    # Entry points
    # -----------------------

    async def start(self, event: Event) -> None:
        """Onboard a first-time user, or greet a returning one."""
        async with self._states.locked(event.user_id):
            try:
                known = self._users.is_known_user(event.user_id)
                user = self._users.get_user(event.user_id) if known else None
            except StoreError:
                await self._reply(event, "common.error")
                return

            if user is not None:
                first_name = (user.name or event.first_name or "").split(" ")[0]
                await self._reply(
                    event, "start.welcome_back", name=first_name, reply_markup=main_menu_keyboard()
                )
                return

            try:
                self._users.add_user(
                    new_user(
                        event.user_id,
                        first_name=event.first_name,
                        last_name=event.last_name,
                        language=event.language,
                    )
                )
            except StoreError:
                await self._reply(event, "common.error")
                return
            logger.info("Onboarding user %s", event.user_id)
            await self._reply(event, "start.greeting", name=event.first_name)
            await self._request_location(event, self._states.load(event.user_id))

    async def edit_location(self, event: Event) -> None:
        """Restart location capture for a registered user; replaces any dialogue in progress."""
        async with self._states.locked(event.user_id):
            try:
                known = self._users.is_known_user(event.user_id)
            except StoreError:
                await self._reply(event, "common.error")
                return
            if not known:
                await self._reply(event, "start.register_first")
                return
            await self._request_location(event, self._states.load(event.user_id))

    async def cancel(self, event: Event) -> None:
        async with self._states.locked(event.user_id):
            state = self._states.load(event.user_id)
            if state.is_idle:
                await self._reply(event, "common.nothing_to_cancel")
                return
            self._finish(event, state)
            await self._reply(event, "common.cancelled", reply_markup=main_menu_keyboard())

    async def location_choice(self, event: Event) -> None:
        """Callback from the share-location / manual-input buttons."""
        cb = parse_cb(event.callback_data)
        if not cb or cb.flow != "location" or cb.kind != "choice" or cb.value not in ("share", "manual"):
            await self._reply(event, "common.start_over")
            return

        lang = event.language or "en"
        async with self._states.locked(event.user_id):
            state = self._states.load(event.user_id)
            if state.is_idle:
                flow = LocationFlow(previous_message_id=event.message_id)
            elif state.step == Step.WAITING_FOR_LOCATION:
                flow = state.location
            else:
                await self._reply(event, "location.busy")
                return

            if cb.value == "share":
                await self._reply(event, "location.send_pin", reply_markup=send_location_kb(lang))
                self._transition(event, state, ConversationState(Step.WAITING_FOR_LOCATION, flow))
            else:
                await self._reply(event, "city.prompt", reply_markup=ReplyKeyboardRemove())
                self._transition(event, state, ConversationState(Step.WAITING_FOR_CITY, flow))

    async def notes_action(self, event: Event) -> None:
        """Callback from the notes menu; opens one of the note sub-flows."""
        cb = parse_cb(event.callback_data)
        action = _NOTE_ACTIONS.get(cb.value) if cb and cb.flow == "notes" and cb.kind == "action" else None
        if action is None:
            await self._reply(event, "notes.unsupported")
            return

        step, prompt_key = action
        async with self._states.locked(event.user_id):
            state = self._states.load(event.user_id)
            if not state.is_idle and state.step not in NOTE_STEPS:
                await self._reply(event, "location.busy")
                return
            await self._reply(event, prompt_key)
            self._transition(event, state, ConversationState(step, NoteFlow()))

    async def handle_message(self, event: Event) -> None:
        """Catch-all for text and location messages: advance the active dialogue by one step."""
        async with self._states.locked(event.user_id):
            state = self._states.load(event.user_id)
            if state.is_idle:
                return
            handler = self._steps.get(state.step)
            if handler is None:
                logger.error("user %s: no handler for step %s", event.user_id, state.step.value)
                self._finish(event, state)
                await self._reply(event, "common.start_over")
                return
            await handler(event, state)

    # -----------------------
    # Location flow
    # -----------------------

    async def _on_location(self, event: Event, state: ConversationState) -> None:
        if event.location is None:
            await self._reply(event, "location.hint")
            return

        latitude, longitude = event.location
        try:
            info = await self._providers.reverse_geocode(latitude, longitude)
        except ProviderError as e:
            logger.warning("Reverse geocoding failed for user %s: %s", event.user_id, e)
            await self._reply(event, "location.lookup_failed")
            return
        city = info.city or info.state
        if not city or not info.country:
            logger.warning("Reverse geocoding gave no city/country for user %s", event.user_id)
            await self._reply(event, "location.lookup_failed")
            return

        flow = state.location
        if flow.previous_message_id is not None:
            await self._gateway.delete_message(event.chat_id, flow.previous_message_id)
        flow = replace(
            flow,
            previous_message_id=None,
            city=city,
            country=info.country,
        )
        lang = event.language or "en"
        await self._reply(event, "location.found", city=flow.city, country=flow.country)
        await self._reply(event, "units.prompt", reply_markup=units_kb(lang))
        self._transition(event, state, ConversationState(Step.WAITING_FOR_UNITS, flow))

    async def _on_city(self, event: Event, state: ConversationState) -> None:
        city = (event.text or "").strip()
        if not city:
            await self._reply(event, "city.prompt")
            return
        await self._reply(event, "country.prompt")
        self._transition(
            event, state, ConversationState(Step.WAITING_FOR_COUNTRY, replace(state.location, city=city))
        )

    async def _on_country(self, event: Event, state: ConversationState) -> None:
        country = (event.text or "").strip()
        if not country:
            await self._reply(event, "country.prompt")
            return
        await self._reply(event, "units.prompt", reply_markup=units_kb(event.language or "en"))
        self._transition(
            event, state, ConversationState(Step.WAITING_FOR_UNITS, replace(state.location, country=country))
        )

    async def _on_units(self, event: Event, state: ConversationState) -> None:
        lang = event.language or "en"
        units = units_from_label(event.text)
        if units is None:
            await self._reply(event, "units.invalid", reply_markup=units_kb(lang))
            return
        flow = replace(state.location, units=units)
        await self._reply(
            event,
            "confirm.summary",
            city=flow.city,
            country=flow.country,
            units=units_label(lang, units),
            reply_markup=confirm_kb(lang),
        )
        self._transition(event, state, ConversationState(Step.WAITING_FOR_CONFIRMATION, flow))

    async def _on_confirmation(self, event: Event, state: ConversationState) -> None:
        if is_label(event.text, "confirm.cancel_btn"):
            self._finish(event, state)
            await self._reply(event, "confirm.cancelled", reply_markup=main_menu_keyboard())
            return
        if not is_label(event.text, "confirm.confirm_btn"):
            await self._reply(event, "confirm.invalid", reply_markup=confirm_kb(event.language or "en"))
            return

        flow = state.location
        try:
            user = self._users.get_user(event.user_id)
            user.city = flow.city
            user.country = flow.country
            if flow.units is not None:
                user.units = flow.units
            self._users.update_user(user)
        except UserNotFoundError:
            logger.warning("user %s confirmed a location but is not registered", event.user_id)
            self._finish(event, state)
            await self._reply(event, "common.start_over")
            return
        except StoreError:
            await self._reply(event, "confirm.save_failed")
            return

        logger.info("user %s saved location %s, %s (%s)", event.user_id, flow.city, flow.country, flow.units)
        self._finish(event, state)
        await self._reply(event, "confirm.saved", reply_markup=main_menu_keyboard())

    # -----------------------
    # Note sub-flows
    # -----------------------

    async def _on_note_text(self, event: Event, state: ConversationState) -> None:
        text = (event.text or "").strip()
        if not text:
            await self._reply(event, "notes.empty_text")
            return
        try:
            self._users.add_note(event.user_id, text)
        except StoreError:
            await self._reply(event, "common.error")
            return
        self._finish(event, state)
        await self._reply(event, "notes.saved")

    async def _on_note_index(self, event: Event, state: ConversationState) -> None:
        raw = (event.text or "").strip().lstrip("#")
        if not raw.isdigit():
            await self._reply(event, "notes.bad_index")
            return
        try:
            notes = self._users.get_user_notes(event.user_id)
        except StoreError:
            await self._reply(event, "common.error")
            return
        index = int(raw)
        if not 1 <= index <= len(notes):
            await self._reply(event, "notes.bad_index")
            return

        # TODO: edit/delete/share bodies; UserStore.update_note/delete_note are ready for edit and delete.
        logger.info("user %s picked note #%s for %s", event.user_id, index, state.step.value)
        self._finish(event, state)
        await self._reply(event, "common.not_implemented")
