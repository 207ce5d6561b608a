"""Pieces shared by the booking and rescheduling wizards.

Both flows have a slot-selection step backed by a SlotStore (default window plus an
optional picked date), and both run their API calls through the same guarded driver.
"""

import logging
from datetime import datetime
from typing import Any, Callable, ClassVar, List, TypeVar

from pydantic import BaseModel, Field

from clinic_booking.errors import AuthenticationRequired, ClinicBookingError, ValidationError
from clinic_booking.models import Identifier, SlotRecord, SlotsResponse, SlotStore, Workplace
from clinic_booking.slots import DateCursor, build_slot_store, is_past_date, local_today, parse_iso_date

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."


class FlowState(BaseModel):
    step: str
    loading: bool = False
    error: str | None = None
    can_retry: bool = False


class SlotSelectionState(FlowState):
    SLOT_STEP: ClassVar[str] = "slots"

    store: SlotStore = Field(default_factory=SlotStore)
    selected_date: str | None = None
    custom_date: str | None = None  # set while the date picker overrides the default window
    selected_slot_id: str | None = None

    @property
    def current_slots(self) -> List[SlotRecord]:
        return self.store.slots_for(self.selected_date) or []

    @property
    def selected_slot(self) -> SlotRecord | None:
        if self.selected_slot_id is None:
            return None
        return self.store.find_slot(self.selected_date, self.selected_slot_id)


F = TypeVar("F", bound=FlowState)
S = TypeVar("S", bound=SlotSelectionState)


def cleared_slots() -> dict:
    return {"store": SlotStore(), "selected_date": None, "custom_date": None, "selected_slot_id": None}


def with_error(state: F, message: str, can_retry: bool = False) -> F:
    return state.model_copy(update={"error": message, "can_retry": can_retry})


def cancelled(state: F) -> F:
    return state.model_copy(update={"step": "cancelled", "error": None, "can_retry": False})


def abandoned(state: F, message: str) -> F:
    return state.model_copy(update={"step": "abandoned", "error": message, "can_retry": False})


def slots_loaded(state: S, store: SlotStore, requested_date: str | None = None) -> S:
    return state.model_copy(
        update={
            "store": store,
            "selected_date": store.initial_date(requested_date),
            "custom_date": requested_date,
            "selected_slot_id": None,
            "error": None,
            "can_retry": False,
        }
    )


def slots_failed(state: S, message: str, requested_date: str | None = None) -> S:
    """Leaves the slot step with nothing loaded and a retry offered."""
    return state.model_copy(
        update={
            "store": SlotStore(),
            "selected_date": None,
            "custom_date": requested_date,
            "selected_slot_id": None,
            "error": message,
            "can_retry": True,
        }
    )


def date_cursor(state: SlotSelectionState) -> DateCursor | None:
    """Previous/Next cursor over the default window; hidden while a picked date is active."""
    if state.step != state.SLOT_STEP or state.custom_date is not None or state.store.is_empty:
        return None
    return DateCursor(state.store.dates, state.selected_date)


def _move(state: S, step: Callable[[DateCursor], str | None]) -> S:
    cursor = date_cursor(state)
    if cursor is None:
        return state
    new_date = step(cursor)
    if new_date == state.selected_date:
        return state
    return state.model_copy(update={"selected_date": new_date, "selected_slot_id": None})


def previous_date(state: S) -> S:
    return _move(state, DateCursor.prev)


def next_date(state: S) -> S:
    return _move(state, DateCursor.next)


def slot_selected(state: S, slot_id: str) -> S:
    if state.step != state.SLOT_STEP or state.store.find_slot(state.selected_date, slot_id) is None:
        raise ValidationError("slot", "Please select an available time slot")
    return state.model_copy(update={"selected_slot_id": slot_id, "error": None})


class RemoteDriver:
    """Runs transitions and API calls against a single state object."""

    state: Any

    def _remote(self, call: Callable[[], Any], on_success, on_failure):
        """Runs one API call with the double-submit guard and uniform error handling."""
        if self.state.loading:
            logger.warning("A request is already in flight. Ignoring.")
            return self.state

        self.state = self.state.model_copy(update={"loading": True})
        try:
            result = call()
        except AuthenticationRequired as e:
            self.state = abandoned(self.state, e.message)
        except ClinicBookingError as e:
            logger.error(f"Request failed: {e.message}")
            self.state = on_failure(self.state, e.message)
        except Exception as e:
            logger.error(f"Unexpected error during request: {e}")
            self.state = on_failure(self.state, GENERIC_ERROR)
        else:
            self.state = on_success(self.state, result)
        finally:
            self.state = self.state.model_copy(update={"loading": False})
        return self.state

    def _apply(self, transition, *args) -> bool:
        """Applies a pure transition, turning a ValidationError into a shown message."""
        try:
            self.state = transition(self.state, *args)
            return True
        except ValidationError as e:
            self.state = with_error(self.state, e.message)
            return False

    def cancel(self):
        self.state = cancelled(self.state)
        return self.state


class WizardDriver(RemoteDriver):
    """RemoteDriver with the slot-selection step."""

    def __init__(self, fetch_slots: Callable[..., SlotsResponse], clock: Callable[[], datetime] = datetime.now):
        self._fetch_slots = fetch_slots
        self._clock = clock

    def _load_slots(
        self,
        doctor_id: Identifier | None,
        workplace_id: Identifier | None,
        day: str | None,
        workplace: Workplace | None = None,
        exclude_slot: str | None = None,
        exclude_date: str | None = None,
    ):
        if doctor_id is None:
            self.state = with_error(self.state, "Doctor information not available")
            return self.state

        def on_success(state, response: SlotsResponse):
            store = build_slot_store(
                response.slots_by_date,
                self._clock(),
                context=response,
                workplace=workplace,
                exclude_slot=exclude_slot,
                exclude_date=exclude_date,
            )
            return slots_loaded(state, store, day)

        return self._remote(
            lambda: self._fetch_slots(doctor_id, workplace_id, day),
            on_success,
            lambda s, msg: slots_failed(s, msg, day),
        )

    def _check_picked_date(self, day: str | None) -> bool:
        if day is None:
            return True
        if parse_iso_date(day) is None or is_past_date(day, local_today(self._clock())):
            self.state = with_error(self.state, "Please pick today or a later date")
            return False
        return True

    @property
    def cursor(self) -> DateCursor | None:
        return date_cursor(self.state)

    def previous(self):
        self.state = previous_date(self.state)
        return self.state

    def next(self):
        self.state = next_date(self.state)
        return self.state

    def select_slot(self, slot_id: str):
        self._apply(slot_selected, slot_id)
        return self.state
