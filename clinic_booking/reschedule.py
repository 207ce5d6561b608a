"""Rescheduling flow for an existing appointment.

Three entry modes share one state machine:

- direct: an appointment id is given; it is looked up in the patient's bookings
- pick_one: the patient first chooses one of their active bookings
- revisit: a doctor schedules a follow-up for an appointment they already hold;
  the reason step is skipped and a fixed reason is sent

Steps: select_appointment (pick_one only) -> select_slot -> select_reason
(skipped for revisit) -> confirm -> done.
"""

import logging
from datetime import datetime
from typing import Any, Callable, ClassVar, List, Literal

from clinic_booking import api, config
from clinic_booking.appointments import active_bookings, find_appointment
from clinic_booking.errors import ValidationError
from clinic_booking.flow import (
    SlotSelectionState,
    WizardDriver,
    abandoned,
    cleared_slots,
    with_error,
)
from clinic_booking.models import (
    Appointment,
    Identifier,
    RescheduleRequest,
    RescheduleResult,
    SlotsResponse,
    UserAppointments,
)
from clinic_booking.slots import local_iso, parse_iso_date

logger = logging.getLogger(__name__)

RescheduleMode = Literal["direct", "pick_one", "revisit"]
RescheduleStep = Literal[
    "select_appointment", "select_slot", "select_reason", "confirm", "done", "cancelled", "abandoned"
]

SUCCESS_MESSAGE = "Your appointment has been rescheduled successfully!"


class RescheduleState(SlotSelectionState):
    SLOT_STEP: ClassVar[str] = "select_slot"

    step: RescheduleStep = "select_appointment"
    mode: RescheduleMode = "direct"
    appointments: List[Appointment] = []
    appointment: Appointment | None = None
    reason: str = ""
    custom_reason: str = ""
    result_message: str | None = None
    secondary_error: str | None = None


def _cleared_reason() -> dict:
    return {"reason": "", "custom_reason": ""}


def final_reason(state: RescheduleState) -> str:
    """The reason text that is actually sent."""
    if state.mode == "revisit":
        return config.REVISIT_REASON
    if state.reason == config.OTHER_REASON:
        return state.custom_reason.strip()
    return state.reason


def reason_errors(state: RescheduleState) -> List[ValidationError]:
    if state.mode == "revisit":
        return []
    if not state.reason:
        return [ValidationError("reason", "Please select a reason for rescheduling")]
    if state.reason == config.OTHER_REASON and not state.custom_reason.strip():
        return [ValidationError("custom_reason", "Please provide a reason for rescheduling")]
    return []


# --- Transitions ---


def appointments_loaded(state: RescheduleState, data: UserAppointments) -> RescheduleState:
    """pick_one: offer only the bookings that can still be moved."""
    bookings = active_bookings(data)
    logger.info(f"{len(bookings)} active bookings available for rescheduling")
    return state.model_copy(
        update={"step": "select_appointment", "appointments": bookings, "error": None, "can_retry": False}
    )


def appointment_lookup(state: RescheduleState, data: UserAppointments, appointment_id: Identifier) -> RescheduleState:
    """direct: resolve the id against the patient's bookings, abandoning when it is unknown."""
    appointment = find_appointment(data, appointment_id)
    if appointment is None:
        return abandoned(state, "Appointment not found")
    return appointment_chosen(state, appointment)


def appointment_chosen(state: RescheduleState, appointment: Appointment | None) -> RescheduleState:
    if state.step != "select_appointment":
        raise ValidationError("appointment", "An appointment has already been chosen")
    if appointment is None:
        raise ValidationError("appointment", "Please choose an appointment to reschedule")
    return state.model_copy(
        update={
            "step": "select_slot",
            "appointment": appointment,
            "error": None,
            "can_retry": False,
            **cleared_slots(),
            **_cleared_reason(),
        }
    )


def slot_confirmed(state: RescheduleState) -> RescheduleState:
    """Leaves the slot step; revisit goes straight to confirm."""
    if state.step != "select_slot" or state.selected_slot is None:
        raise ValidationError("slot", "Please select a new time slot")
    next_step = "confirm" if state.mode == "revisit" else "select_reason"
    return state.model_copy(update={"step": next_step, "error": None})


def reason_selected(state: RescheduleState, reason: str) -> RescheduleState:
    if state.step != "select_reason":
        raise ValidationError("reason", "Select a slot before choosing a reason")
    if reason not in config.RESCHEDULE_REASONS:
        raise ValidationError("reason", f"Unknown reason: {reason}")
    custom = state.custom_reason if reason == config.OTHER_REASON else ""
    return state.model_copy(update={"reason": reason, "custom_reason": custom, "error": None})


def custom_reason_set(state: RescheduleState, text: str) -> RescheduleState:
    if state.reason != config.OTHER_REASON:
        raise ValidationError("custom_reason", 'Custom text is only used with the "Other" reason')
    return state.model_copy(update={"custom_reason": text})


def reason_confirmed(state: RescheduleState) -> RescheduleState:
    if state.step != "select_reason":
        raise ValidationError("reason", "Nothing to confirm yet")
    errors = reason_errors(state)
    if errors:
        raise errors[0]
    return state.model_copy(update={"step": "confirm", "error": None})


def back(state: RescheduleState) -> RescheduleState:
    """One step back, dropping only what the step being left captured."""
    if state.step == "confirm":
        previous = "select_slot" if state.mode == "revisit" else "select_reason"
        return state.model_copy(update={"step": previous, "error": None, "can_retry": False})
    if state.step == "select_reason":
        return state.model_copy(update={"step": "select_slot", "error": None, **_cleared_reason()})
    if state.step == "select_slot":
        if state.mode != "pick_one":
            return state.model_copy(update={"step": "cancelled", "error": None, "can_retry": False})
        return state.model_copy(
            update={"step": "select_appointment", "appointment": None, "error": None, "can_retry": False, **cleared_slots()}
        )
    if state.step == "select_appointment":
        return state.model_copy(update={"step": "cancelled", "error": None, "can_retry": False})
    return state


def build_reschedule_request(state: RescheduleState) -> RescheduleRequest:
    appointment = state.appointment
    slot = state.selected_slot
    if appointment is None or appointment.id is None:
        raise ValidationError("appointment", "Please choose an appointment to reschedule")
    if state.selected_date is None or slot is None:
        raise ValidationError("slot", "Please select a new time slot")
    errors = reason_errors(state)
    if errors:
        raise errors[0]
    return RescheduleRequest(
        appointment_id=appointment.id,
        reason=final_reason(state),
        new_appointment_date=state.selected_date,
        new_time_slot=slot.slot_time,
    )


def reschedule_succeeded(state: RescheduleState, result: RescheduleResult) -> RescheduleState:
    return state.model_copy(
        update={"step": "done", "result_message": result.message or SUCCESS_MESSAGE, "error": None, "can_retry": False}
    )


def reschedule_failed(state: RescheduleState, message: str) -> RescheduleState:
    return with_error(state, message, can_retry=True)


def completion_failed(state: RescheduleState, message: str) -> RescheduleState:
    """The follow-up stands even when closing the original appointment failed."""
    return state.model_copy(update={"secondary_error": message})


# --- Driver ---


class RescheduleWizard(WizardDriver):
    """Runs one reschedule, for a patient (direct, pick_one) or a doctor (revisit)."""

    def __init__(
        self,
        user_id: Identifier | None,
        mode: RescheduleMode = "direct",
        appointment_id: Identifier | None = None,
        appointment: Appointment | None = None,
        load_appointments: Callable[[Identifier], UserAppointments] | None = None,
        fetch_slots: Callable[..., SlotsResponse] | None = None,
        reschedule: Callable[[Identifier, RescheduleRequest], RescheduleResult] | None = None,
        complete: Callable[[Identifier], Any] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(fetch_slots or api.fetch_available_slots, clock)
        self.user_id = user_id
        self.appointment_id = appointment_id
        self._initial_appointment = appointment
        self._load_appointments = load_appointments or api.fetch_all_user_appointments
        self._reschedule = reschedule or api.reschedule_appointment
        self._complete = complete or api.complete_appointment
        self.state = RescheduleState(mode=mode)

    def start(self) -> RescheduleState:
        mode = self.state.mode
        if mode == "revisit":
            if self._initial_appointment is None:
                self.state = abandoned(self.state, "No appointment given for the follow-up visit")
                return self.state
            return self.choose(self._initial_appointment)

        if mode == "direct":
            if self.appointment_id is None:
                self.state = abandoned(self.state, "No appointment selected")
                return self.state
            self._remote(
                lambda: self._load_appointments(self.user_id),
                lambda s, data: appointment_lookup(s, data, self.appointment_id),
                lambda s, msg: abandoned(s, msg),
            )
            if self.state.step == "select_slot":
                self._load_appointment_slots(None)
            return self.state

        return self._remote(
            lambda: self._load_appointments(self.user_id),
            appointments_loaded,
            lambda s, msg: with_error(s.model_copy(update={"appointments": []}), msg, can_retry=True),
        )

    def choose(self, appointment: Appointment) -> RescheduleState:
        if not self._apply(appointment_chosen, appointment):
            return self.state
        logger.info(f"Rescheduling appointment {appointment.id} ({appointment.appointment_date} {appointment.slot})")
        return self._load_appointment_slots(None)

    def _load_appointment_slots(self, day: str | None) -> RescheduleState:
        appointment = self.state.appointment
        appointment_day = parse_iso_date(appointment.appointment_date)
        return self._load_slots(
            appointment.doctor_id,
            appointment.workplace_id,
            day,
            exclude_slot=appointment.slot or None,
            exclude_date=local_iso(appointment_day) if appointment_day else None,
        )

    def pick_date(self, day: str | None) -> RescheduleState:
        if self.state.step != "select_slot" or self.state.appointment is None or not self._check_picked_date(day):
            return self.state
        return self._load_appointment_slots(day)

    def retry(self) -> RescheduleState:
        if self.state.step == "select_slot" and self.state.appointment is not None:
            return self._load_appointment_slots(self.state.custom_date)
        if self.state.step == "select_appointment":
            return self.start()
        return self.state

    def proceed(self) -> RescheduleState:
        """Moves forward from the slot or reason step."""
        if self.state.step == "select_reason":
            self._apply(reason_confirmed)
        else:
            self._apply(slot_confirmed)
        return self.state

    def select_reason(self, reason: str) -> RescheduleState:
        self._apply(reason_selected, reason)
        return self.state

    def set_custom_reason(self, text: str) -> RescheduleState:
        self._apply(custom_reason_set, text)
        return self.state

    def back(self) -> RescheduleState:
        self.state = back(self.state)
        return self.state

    def confirm(self) -> RescheduleState:
        if self.state.step != "confirm":
            self.state = with_error(self.state, "Please complete the previous steps first")
            return self.state
        try:
            request = build_reschedule_request(self.state)
        except ValidationError as e:
            self.state = with_error(self.state, e.message)
            return self.state

        logger.info(f"Rescheduling {request.appointment_id} to {request.new_appointment_date} {request.new_time_slot}")
        self._remote(
            lambda: self._reschedule(request.appointment_id, request),
            reschedule_succeeded,
            reschedule_failed,
        )
        if self.state.step == "done" and self.state.mode == "revisit":
            self._complete_original(request.appointment_id)
        return self.state

    def _complete_original(self, appointment_id: Identifier) -> None:
        try:
            self._complete(appointment_id)
            logger.info(f"Original appointment {appointment_id} marked as completed")
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "Failed to complete the original appointment"
            logger.warning(f"Follow-up booked but completing appointment {appointment_id} failed: {message}")
            self.state = completion_failed(self.state, message)
