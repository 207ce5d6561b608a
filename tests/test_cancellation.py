from unittest.mock import MagicMock

import pytest

from clinic_booking import cancellation, config
from clinic_booking.errors import AuthenticationRequired, SubmissionError
from clinic_booking.models import Appointment, CancellationSelection, UserAppointments


def appointments_payload():
    return UserAppointments.model_validate(
        {
            "appointmentsByDate": {
                "2025-03-11": [
                    {"id": 55, "status": "BOOKED", "slot": "10:00AM - 10:30AM"},
                    {"id": 56, "status": "CANCELLED", "slot": "11:00AM - 11:30AM"},
                    {"id": 57, "status": "COMPLETED", "slot": "12:00PM - 12:30PM"},
                ]
            }
        }
    )


@pytest.fixture
def load():
    return MagicMock(return_value=appointments_payload())


@pytest.fixture
def cancel():
    return MagicMock(return_value=None)


@pytest.fixture
def flow(load, cancel):
    return cancellation.CancellationFlow(user_id=1, load_appointments=load, cancel=cancel)


def test_can_cancel():
    assert cancellation.can_cancel(Appointment(status="BOOKED")) is True
    assert cancellation.can_cancel(Appointment(status="RESCHEDULED")) is True
    assert cancellation.can_cancel(Appointment(status="CANCELLED")) is False
    assert cancellation.can_cancel(Appointment(status="COMPLETED")) is False
    assert cancellation.can_cancel(None) is False


def test_validate_requires_reason():
    outcome = cancellation.validate(CancellationSelection(appointment_id=55))

    assert outcome.ok is False
    assert outcome.messages == ["Please select a reason for cancellation"]


def test_validate_other_requires_custom_text():
    outcome = cancellation.validate(CancellationSelection(appointment_id=55, reason="Other", custom_reason="  "))

    assert outcome.messages == ["Please provide a custom reason for cancellation"]


def test_validate_builds_request():
    outcome = cancellation.validate(CancellationSelection(appointment_id=55, reason="Other", custom_reason=" Moved away "))

    assert outcome.ok is True
    assert outcome.payload.appointment_id == 55
    assert outcome.payload.body() == {"reason": "Moved away", "cancelledBy": "user"}


def test_direct_cancel(flow, load, cancel):
    state = flow.start(55)
    assert state.step == "select_reason"
    load.assert_called_once_with(1)

    flow.select_reason("Feeling better")
    state = flow.confirm()

    cancel.assert_called_once_with(55, {"reason": "Feeling better", "cancelledBy": "user"})
    assert state.step == "done"
    assert state.result_message == cancellation.SUCCESS_MESSAGE


def test_direct_cancel_of_terminal_appointment_is_refused(flow, cancel):
    state = flow.start(56)

    assert state.step == "select_appointment"
    assert state.error == "This appointment is already cancelled."

    state = flow.confirm()
    assert state.error == "This appointment is already cancelled."
    cancel.assert_not_called()


def test_unknown_appointment_abandons(flow):
    state = flow.start(999)

    assert state.step == "abandoned"
    assert state.error == "Appointment not found"


def test_pick_one_lists_only_booked(flow):
    state = flow.start()

    assert [a.id for a in state.appointments] == [55]

    state = flow.choose(state.appointments[0])
    assert state.step == "select_reason"
    assert state.selection.appointment_id == 55


def test_choose_completed_appointment(flow):
    state = flow.choose(Appointment(id=57, status="COMPLETED"))

    assert state.step == "select_appointment"
    assert state.error == "This appointment has already been completed."


def test_reason_switch_clears_custom_text(flow):
    flow.start(55)
    flow.select_reason("Other")
    flow.set_custom_reason("Found another doctor")
    assert flow.state.selection.custom_reason == "Found another doctor"

    state = flow.select_reason("Travel issues")

    assert state.selection.reason == "Travel issues"
    assert state.selection.custom_reason == ""


def test_unknown_reason_rejected(flow):
    flow.start(55)

    state = flow.select_reason("Because")

    assert state.selection.reason == ""
    assert state.error == "Unknown reason: Because"


def test_doctor_reason_list():
    flow = cancellation.CancellationFlow(user_id=1, reasons=config.DOCTOR_CANCEL_REASONS)
    flow.state = flow.state.model_copy(update={"step": "select_reason"})

    state = flow.select_reason("Patient no-show")

    assert state.selection.reason == "Patient no-show"


def test_confirm_failure_keeps_selection(flow, cancel):
    cancel.side_effect = SubmissionError("Failed to cancel appointment. Please try again or contact support.")
    flow.start(55)
    flow.select_reason("Schedule conflict")

    state = flow.confirm()

    assert state.step == "select_reason"
    assert state.can_retry is True
    assert state.selection.reason == "Schedule conflict"


def test_confirm_with_expired_session(flow, cancel):
    cancel.side_effect = AuthenticationRequired()
    flow.start(55)
    flow.select_reason("Schedule conflict")

    assert flow.confirm().step == "abandoned"
