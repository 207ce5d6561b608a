"""Patient booking flow: search -> workplaces -> slots -> done.

State lives in an immutable BookingState. The module-level functions are pure
transitions (they return a new state, or raise ValidationError for an illegal
move); BookingWizard sequences them around the API calls.
"""

import logging
from datetime import datetime
from typing import Callable, List, Literal

from clinic_booking import api, config
from clinic_booking.errors import ValidationError
from clinic_booking.flow import (
    SlotSelectionState,
    WizardDriver,
    cleared_slots,
    with_error,
)
from clinic_booking.models import (
    BookingRequest,
    BookingResult,
    Doctor,
    Identifier,
    NoWorkplacesInfo,
    SlotsResponse,
    Workplace,
)
from clinic_booking.slots import parse_iso_date

logger = logging.getLogger(__name__)

BookingStep = Literal["search", "workplaces", "slots", "done", "cancelled", "abandoned"]


class BookingState(SlotSelectionState):
    step: BookingStep = "search"
    query: str = ""
    workplaces: List[Workplace] = []
    nearby_workplaces: List[Workplace] = []
    no_results: bool = False
    no_workplaces: NoWorkplacesInfo | None = None
    selected_workplace: Workplace | None = None
    confirmation: str | None = None


def flatten_workplaces(doctors: List[Doctor]) -> List[Workplace]:
    """One entry per (doctor, workplace) pair, carrying the doctor's details."""
    return [wp for doctor in doctors for wp in doctor.bookable_workplaces()]


# --- Transitions ---


def search_requested(state: BookingState, query: str) -> BookingState:
    if not query or not query.strip():
        raise ValidationError("query", "Please enter a search term (doctor name, clinic, area, etc.)")
    return state.model_copy(update={"query": query.strip(), "error": None, "no_results": False, "no_workplaces": None})


def search_completed(state: BookingState, query: str, doctors: List[Doctor]) -> BookingState:
    """Moves to the workplace list, or stays on search when nobody matched."""
    base = {"query": query, "selected_workplace": None, "error": None, "can_retry": False, **cleared_slots()}

    if not doctors:
        return state.model_copy(
            update={
                **base,
                "step": "search",
                "workplaces": [],
                "no_results": True,
                "no_workplaces": None,
                "error": f'No doctors found matching "{query}". Please try a different search term.',
            }
        )

    workplaces = flatten_workplaces(doctors)
    no_workplaces = None
    if not workplaces:
        # Doctors exist but none has a bookable location.
        no_workplaces = NoWorkplacesInfo(
            doctor_names=", ".join(d.doctor_name for d in doctors), doctor_count=len(doctors)
        )
    return state.model_copy(
        update={
            **base,
            "step": "workplaces",
            "workplaces": workplaces,
            "no_results": False,
            "no_workplaces": no_workplaces,
        }
    )


def search_failed(state: BookingState, message: str) -> BookingState:
    return with_error(state.model_copy(update={"step": "search"}), message, can_retry=True)


def nearby_loaded(state: BookingState, doctors: List[Doctor]) -> BookingState:
    return state.model_copy(update={"nearby_workplaces": flatten_workplaces(doctors)})


def show_all_nearby(state: BookingState) -> BookingState:
    if not state.nearby_workplaces:
        raise ValidationError("nearby", "No nearby doctors to show")
    return state.model_copy(
        update={
            "step": "workplaces",
            "workplaces": list(state.nearby_workplaces),
            "no_results": False,
            "no_workplaces": None,
            "selected_workplace": None,
            "error": None,
            **cleared_slots(),
        }
    )


def back_to_search(state: BookingState) -> BookingState:
    """Returns to search keeping the query; drops everything chosen after it."""
    return state.model_copy(
        update={
            "step": "search",
            "workplaces": [],
            "no_results": False,
            "no_workplaces": None,
            "selected_workplace": None,
            "error": None,
            "can_retry": False,
            "confirmation": None,
            **cleared_slots(),
        }
    )


def workplace_selected(state: BookingState, workplace: Workplace | None) -> BookingState:
    if state.step != "workplaces":
        raise ValidationError("workplace", "Search for a doctor before choosing a workplace")
    if workplace is None:
        raise ValidationError("workplace", "Please choose a workplace")
    return state.model_copy(
        update={"step": "slots", "selected_workplace": workplace, "error": None, "can_retry": False, **cleared_slots()}
    )


def build_booking_request(state: BookingState, notes: str = config.BOOKING_NOTES) -> BookingRequest:
    """Builds the booking body from the confirmed (workplace, date, slot) triple."""
    workplace = state.selected_workplace
    slot = state.selected_slot
    if workplace is None:
        raise ValidationError("workplace", "Please choose a workplace")
    if state.selected_date is None or slot is None:
        raise ValidationError("slot", "Please select a time slot")
    if workplace.doctor_id is None or workplace.workplace_id is None:
        raise ValidationError("workplace", "Invalid workplace selected")

    return BookingRequest(
        doctor_id=workplace.doctor_id,
        workplace_id=workplace.workplace_id,
        # Midnight of the chosen calendar day, built from the date string itself.
        requested_time=f"{state.selected_date}T00:00:00.000Z",
        slot=slot.slot_time,
        notes=notes,
    )


def confirmation_prompt(state: BookingState) -> str:
    """Text for the "are you sure" dialog shown before booking."""
    workplace = state.selected_workplace or Workplace()
    slot = state.selected_slot
    day = parse_iso_date(state.selected_date or "")
    date_text = f"{day:%A}, {day:%B} {day.day}, {day.year}" if day else "Selected Date"
    return (
        "Are you sure you want to book this appointment?\n\n"
        f"Doctor: Dr. {workplace.doctor_name or 'Doctor'}\n"
        f"Clinic: {workplace.workplace_name or 'Clinic'}\n"
        f"Date: {date_text}\n"
        f"Time: {slot.slot_time if slot else ''}"
    )


def booking_succeeded(state: BookingState, result: BookingResult) -> BookingState:
    workplace = state.selected_workplace or Workplace()
    slot = state.selected_slot
    message = (
        f"Your appointment is confirmed at {result.workplace_name or workplace.workplace_name} "
        f"on {result.slot or (slot.slot_time if slot else '')}.\n\nDoctor: {workplace.doctor_name}"
    )
    return state.model_copy(update={"step": "done", "confirmation": message, "error": None, "can_retry": False})


def booking_failed(state: BookingState, message: str) -> BookingState:
    return with_error(state, message, can_retry=True)


# --- Driver ---


class BookingWizard(WizardDriver):
    """Runs the booking flow for one patient against the API callables."""

    def __init__(
        self,
        user_id: Identifier,
        search: Callable[[str], List[Doctor]] | None = None,
        fetch_slots: Callable[..., SlotsResponse] | None = None,
        book: Callable[[Identifier, BookingRequest], BookingResult] | None = None,
        nearby: Callable[[str], List[Doctor]] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(fetch_slots or api.fetch_available_slots, clock)
        self.user_id = user_id
        self._search = search or api.search_doctors
        self._book = book or api.book_appointment
        self._nearby = nearby or api.search_nearby_doctors
        self.state = BookingState()

    def load_nearby(self, pincode: str | None) -> BookingState:
        """Loads doctors near the patient's pincode. A failure just leaves the list empty."""
        if not pincode:
            return self.state
        return self._remote(
            lambda: self._nearby(pincode),
            nearby_loaded,
            lambda s, _msg: s.model_copy(update={"nearby_workplaces": []}),
        )

    def search(self, query: str) -> BookingState:
        if not self._apply(search_requested, query):
            return self.state
        keyword = self.state.query
        logger.info(f"Searching for: {keyword}")
        return self._remote(
            lambda: self._search(keyword),
            lambda s, doctors: search_completed(s, keyword, doctors),
            search_failed,
        )

    def show_all_nearby(self) -> BookingState:
        self._apply(show_all_nearby)
        return self.state

    def choose_workplace(self, workplace: Workplace) -> BookingState:
        if not self._apply(workplace_selected, workplace):
            return self.state
        logger.info(f"Selected workplace: {workplace.workplace_name} ({workplace.doctor_name})")
        return self._load_slots(workplace.doctor_id, workplace.workplace_id, None, workplace=workplace)

    def pick_date(self, day: str | None) -> BookingState:
        """Loads slots for an explicit date, or the default window again when None."""
        workplace = self.state.selected_workplace
        if self.state.step != "slots" or workplace is None or not self._check_picked_date(day):
            return self.state
        return self._load_slots(workplace.doctor_id, workplace.workplace_id, day, workplace=workplace)

    def retry(self) -> BookingState:
        workplace = self.state.selected_workplace
        if self.state.step == "slots" and workplace is not None:
            return self._load_slots(workplace.doctor_id, workplace.workplace_id, self.state.custom_date, workplace=workplace)
        if self.state.step == "search" and self.state.query:
            return self.search(self.state.query)
        return self.state

    def confirm(self, notes: str = config.BOOKING_NOTES) -> BookingState:
        try:
            request = build_booking_request(self.state, notes)
        except ValidationError as e:
            self.state = with_error(self.state, e.message)
            return self.state
        logger.info(f"Booking {request.slot} on {self.state.selected_date}")
        return self._remote(lambda: self._book(self.user_id, request), booking_succeeded, booking_failed)

    def back_to_search(self) -> BookingState:
        self.state = back_to_search(self.state)
        return self.state
