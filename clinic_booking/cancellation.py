import logging
from typing import Any, Callable, List, Literal

from pydantic import Field

from clinic_booking import api, config
from clinic_booking.appointments import active_bookings, find_appointment
from clinic_booking.errors import ValidationError
from clinic_booking.flow import FlowState, RemoteDriver, abandoned, with_error
from clinic_booking.models import (
    Appointment,
    CancellationRequest,
    CancellationSelection,
    Identifier,
    UserAppointments,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "Your appointment has been cancelled successfully. "
    "If applicable, any refund will be processed according to our policy."
)

CancellationStep = Literal["select_appointment", "select_reason", "done", "cancelled", "abandoned"]


def can_cancel(appointment: Appointment | None) -> bool:
    """False for appointments that are already cancelled or completed."""
    return appointment is not None and appointment.status not in config.TERMINAL_STATUSES


def cannot_cancel_message(appointment: Appointment | None) -> str:
    if appointment is None:
        return "Please choose an appointment to cancel"
    if appointment.status == config.STATUS_CANCELLED:
        return "This appointment is already cancelled."
    if appointment.status == config.STATUS_COMPLETED:
        return "This appointment has already been completed."
    return "This appointment cannot be cancelled at this time."


def validate(selection: CancellationSelection) -> ValidationOutcome[CancellationRequest]:
    errors: List[ValidationError] = []
    if selection.appointment_id is None:
        errors.append(ValidationError("appointment", "Please choose an appointment to cancel"))
    if not selection.reason.strip():
        errors.append(ValidationError("reason", "Please select a reason for cancellation"))
    elif selection.reason == config.OTHER_REASON and not selection.custom_reason.strip():
        errors.append(ValidationError("custom_reason", "Please provide a custom reason for cancellation"))
    if errors:
        return ValidationOutcome(errors=errors)

    reason = selection.custom_reason.strip() if selection.reason == config.OTHER_REASON else selection.reason
    return ValidationOutcome(
        payload=CancellationRequest(
            appointment_id=selection.appointment_id, reason=reason, cancelled_by=config.CANCELLED_BY_USER
        )
    )


class CancellationState(FlowState):
    step: CancellationStep = "select_appointment"
    appointments: List[Appointment] = []
    appointment: Appointment | None = None
    selection: CancellationSelection = Field(default_factory=CancellationSelection)
    result_message: str | None = None


def appointment_chosen(state: CancellationState, appointment: Appointment | None) -> CancellationState:
    if not can_cancel(appointment):
        raise ValidationError("appointment", cannot_cancel_message(appointment))
    return state.model_copy(
        update={
            "step": "select_reason",
            "appointment": appointment,
            "selection": CancellationSelection(appointment_id=appointment.id),
            "error": None,
        }
    )


def reason_selected(state: CancellationState, reason: str, reasons: List[str]) -> CancellationState:
    if state.step != "select_reason":
        raise ValidationError("reason", "Please choose an appointment to cancel")
    if reason not in reasons:
        raise ValidationError("reason", f"Unknown reason: {reason}")
    custom = state.selection.custom_reason if reason == config.OTHER_REASON else ""
    selection = state.selection.model_copy(update={"reason": reason, "custom_reason": custom})
    return state.model_copy(update={"selection": selection, "error": None})


def custom_reason_set(state: CancellationState, text: str) -> CancellationState:
    if state.selection.reason != config.OTHER_REASON:
        raise ValidationError("custom_reason", 'Custom text is only used with the "Other" reason')
    return state.model_copy(update={"selection": state.selection.model_copy(update={"custom_reason": text})})


class CancellationFlow(RemoteDriver):
    """Cancels one appointment: pick (or look up) the booking, give a reason, confirm."""

    def __init__(
        self,
        user_id: Identifier,
        load_appointments: Callable[[Identifier], UserAppointments] | None = None,
        cancel: Callable[[Identifier, dict], Any] | None = None,
        reasons: List[str] | None = None,
    ):
        self.user_id = user_id
        self.reasons = reasons or config.CANCELLATION_REASONS
        self._load_appointments = load_appointments or api.fetch_all_user_appointments
        self._cancel = cancel or api.cancel_appointment
        self.state = CancellationState()

    def start(self, appointment_id: Identifier | None = None) -> CancellationState:
        if appointment_id is None:
            return self._remote(
                lambda: self._load_appointments(self.user_id),
                lambda s, data: s.model_copy(update={"appointments": active_bookings(data)}),
                lambda s, msg: with_error(s, msg, can_retry=True),
            )

        def on_loaded(state: CancellationState, data: UserAppointments) -> CancellationState:
            appointment = find_appointment(data, appointment_id)
            if appointment is None:
                return abandoned(state, "Appointment not found")
            if not can_cancel(appointment):
                # Shown to the user instead of a cancel action.
                return state.model_copy(update={"appointment": appointment, "error": cannot_cancel_message(appointment)})
            return appointment_chosen(state, appointment)

        return self._remote(lambda: self._load_appointments(self.user_id), on_loaded, abandoned)

    def choose(self, appointment: Appointment) -> CancellationState:
        self._apply(appointment_chosen, appointment)
        return self.state

    def select_reason(self, reason: str) -> CancellationState:
        self._apply(reason_selected, reason, self.reasons)
        return self.state

    def set_custom_reason(self, text: str) -> CancellationState:
        self._apply(custom_reason_set, text)
        return self.state

    def confirm(self) -> CancellationState:
        if not can_cancel(self.state.appointment):
            self.state = with_error(self.state, cannot_cancel_message(self.state.appointment))
            return self.state

        outcome = validate(self.state.selection)
        if not outcome.ok:
            self.state = with_error(self.state, outcome.messages[0])
            return self.state

        request = outcome.payload
        logger.info(f"Cancelling appointment {request.appointment_id}: {request.reason}")
        return self._remote(
            lambda: self._cancel(request.appointment_id, request.body()),
            lambda s, _result: s.model_copy(update={"step": "done", "result_message": SUCCESS_MESSAGE}),
            lambda s, msg: with_error(s, msg, can_retry=True),
        )
