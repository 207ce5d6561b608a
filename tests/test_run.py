from datetime import date, datetime, timedelta
from unittest.mock import MagicMock, patch

from clinic_booking import run
from clinic_booking.errors import FetchError, SubmissionError
from clinic_booking.models import (
    ActionOutcome,
    BookingResult,
    BulkActionForm,
    Doctor,
    RescheduleResult,
    SlotsResponse,
    UserAppointments,
    Workplace,
)
from clinic_booking.slots import local_iso

TODAY = local_iso(date.today())
TOMORROW = local_iso(date.today() + timedelta(days=1))


def upcoming_slots():
    return SlotsResponse(
        slots_by_date={TODAY: ["09:00AM - 09:30AM"], TOMORROW: ["10:00AM - 10:30AM", "10:30AM - 11:00AM"]},
        doctor_name="Rao",
        workplace_name="City Clinic",
    )


def appointments_payload():
    return UserAppointments.model_validate(
        {
            "appointmentsByDate": {
                TOMORROW: [
                    {
                        "id": 55,
                        "appointmentDate": TOMORROW,
                        "slot": "10:30AM - 11:00AM",
                        "status": "BOOKED",
                        "doctorId": 4,
                        "workplaceId": 7,
                    }
                ]
            }
        }
    )


@patch("clinic_booking.run.api.fetch_available_slots")
def test_show_slots_prints_report(mock_fetch, capsys):
    mock_fetch.return_value = SlotsResponse(
        slots_by_date={"2025-03-09": ["09:00AM - 09:30AM"], "2025-03-10": ["2:30PM - 3:00PM"], "2025-03-11": []}
    )

    outcome = run.show_slots(4, 7, clock=lambda: datetime(2025, 3, 10, 8, 0))

    out = capsys.readouterr().out
    assert "--- Available slots for 2025-03-10 ---" in out
    assert "[AVAILABLE] 2:30PM - 3:00PM (starts 2:30 PM)" in out
    assert "Summary: No slots available for 2025-03-11." in out
    assert "Summary: No slots available for 2025-03-12." in out
    assert "2025-03-09" not in out
    assert outcome.ok is True
    assert outcome.message == "1 slots across 2 dates"


@patch("clinic_booking.run.api.fetch_available_slots")
def test_show_slots_failure(mock_fetch):
    mock_fetch.side_effect = FetchError("Failed to load available slots")

    outcome = run.show_slots(4, 7)

    assert outcome.ok is False
    assert outcome.message == "Failed to load available slots"


@patch("clinic_booking.api.book_appointment")
@patch("clinic_booking.api.fetch_available_slots")
@patch("clinic_booking.api.search_doctors")
def test_book_walks_to_the_requested_slot(mock_search, mock_fetch, mock_book):
    mock_search.return_value = [
        Doctor(doctor_id=4, doctor_name="Rao", workplaces=[Workplace(workplace_id=7, workplace_name="City Clinic")])
    ]
    mock_fetch.return_value = upcoming_slots()
    mock_book.return_value = BookingResult(workplace_name="City Clinic", slot="10:30AM - 11:00AM")

    outcome = run.book(1, "rao", "10:30AM - 11:00AM")

    assert outcome.ok is True
    request = mock_book.call_args.args[1]
    assert request.requested_time == f"{TOMORROW}T00:00:00.000Z"
    assert request.slot == "10:30AM - 11:00AM"


@patch("clinic_booking.api.fetch_available_slots")
@patch("clinic_booking.api.search_doctors")
def test_book_unknown_slot(mock_search, mock_fetch):
    mock_search.return_value = [Doctor(doctor_id=4, workplaces=[Workplace(workplace_id=7)])]
    mock_fetch.return_value = upcoming_slots()

    outcome = run.book(1, "rao", "11:00PM - 11:30PM")

    assert outcome.ok is False
    assert outcome.message == "Slot '11:00PM - 11:30PM' is not available"


@patch("clinic_booking.api.search_doctors")
def test_book_no_doctors(mock_search):
    mock_search.return_value = []

    outcome = run.book(1, "nobody", "10:00AM - 10:30AM")

    assert outcome.ok is False
    assert "No doctors found" in outcome.message


@patch("clinic_booking.api.reschedule_appointment")
@patch("clinic_booking.api.fetch_available_slots")
@patch("clinic_booking.api.fetch_all_user_appointments")
def test_reschedule(mock_load, mock_fetch, mock_reschedule):
    mock_load.return_value = appointments_payload()
    mock_fetch.return_value = upcoming_slots()
    mock_reschedule.return_value = RescheduleResult(message="Moved")

    outcome = run.reschedule(1, 55, "10:00AM - 10:30AM", "Work commitment", date=TOMORROW)

    assert outcome.ok is True
    assert outcome.message == "Moved"
    request = mock_reschedule.call_args.args[1]
    assert request.new_appointment_date == TOMORROW
    assert request.reason == "Work commitment"


@patch("clinic_booking.api.fetch_available_slots")
@patch("clinic_booking.api.fetch_all_user_appointments")
def test_reschedule_cannot_pick_current_slot(mock_load, mock_fetch):
    mock_load.return_value = appointments_payload()
    mock_fetch.return_value = upcoming_slots()

    outcome = run.reschedule(1, 55, "10:30AM - 11:00AM", "Work commitment")

    assert outcome.ok is False


@patch("clinic_booking.api.complete_appointment")
@patch("clinic_booking.api.reschedule_appointment")
@patch("clinic_booking.api.fetch_available_slots")
@patch("clinic_booking.api.fetch_all_user_appointments")
def test_revisit_succeeds_when_completion_fails(mock_load, mock_fetch, mock_reschedule, mock_complete):
    mock_load.return_value = appointments_payload()
    mock_fetch.return_value = upcoming_slots()
    mock_reschedule.return_value = RescheduleResult()
    mock_complete.side_effect = SubmissionError("Failed to complete appointment. Please try again.")

    outcome = run.revisit(2, 55, "09:00AM - 09:30AM")

    assert outcome.ok is True
    assert mock_reschedule.call_args.args[1].reason == "Follow-up visit scheduled by doctor"
    mock_complete.assert_called_once_with(55)


@patch("clinic_booking.api.cancel_appointment")
@patch("clinic_booking.api.fetch_all_user_appointments")
def test_cancel(mock_load, mock_cancel):
    mock_load.return_value = appointments_payload()

    outcome = run.cancel(1, 55, "Other", custom_reason="Moved away")

    assert outcome.ok is True
    mock_cancel.assert_called_once_with(55, {"reason": "Moved away", "cancelledBy": "user"})


@patch("clinic_booking.run.bulk_actions.submit_bulk_reschedule")
def test_bulk_reschedule_uses_local_today(mock_submit):
    mock_submit.return_value = ActionOutcome(ok=True, message="done")
    form = BulkActionForm(extend_hours="1", reason="Doctor running late")

    outcome = run.bulk_reschedule(4, 7, form, clock=lambda: datetime(2025, 3, 10, 23, 59))

    mock_submit.assert_called_once_with(4, 7, form, date(2025, 3, 10))
    assert outcome == run.CommandOutcome(ok=True, message="done")


@patch("clinic_booking.run.bulk_actions.submit_cancel_day")
def test_cancel_day(mock_submit):
    mock_submit.return_value = ActionOutcome(ok=False, message="Date cannot be in the past")
    form = BulkActionForm(date_option="custom", custom_date="2025-03-01", reason="Clinic closed")

    outcome = run.cancel_day(7, form, clock=lambda: datetime(2025, 3, 10, 9, 0))

    mock_submit.assert_called_once_with(7, form, date(2025, 3, 10))
    assert outcome.ok is False


def test_print_outcome(capsys):
    run.print_outcome(run.CommandOutcome(ok=False, message="Nope"))

    assert "[ERROR] Nope" in capsys.readouterr().out


@patch("clinic_booking.api.requests.request")
@patch("clinic_booking.api.complete_appointment")
@patch("clinic_booking.api.fetch_available_slots")
@patch("clinic_booking.api.fetch_all_user_appointments")
def test_revisit_with_plain_string_response_finishes(mock_load, mock_fetch, mock_complete, mock_request):
    mock_load.return_value = appointments_payload()
    mock_fetch.return_value = upcoming_slots()
    response = MagicMock(status_code=200, content=b'"Rescheduled"')
    response.json.return_value = "Rescheduled"
    mock_request.return_value = response

    outcome = run.revisit(2, 55, "09:00AM - 09:30AM")

    assert outcome == run.CommandOutcome(ok=True, message="Rescheduled")
    assert mock_request.call_count == 1
    mock_complete.assert_called_once_with(55)


@patch("clinic_booking.run.api.fetch_available_slots")
def test_show_slots_for_one_date_skips_window(mock_fetch, capsys):
    mock_fetch.return_value = SlotsResponse(slots_by_date={"2025-03-12": ["9:00AM - 9:30AM"]})

    run.show_slots(4, 7, "2025-03-12", clock=lambda: datetime(2025, 3, 10, 8, 0))

    out = capsys.readouterr().out
    assert "--- Available slots for 2025-03-12 ---" in out
    assert "2025-03-10" not in out


@patch("clinic_booking.run.api.fetch_workplaces")
def test_list_workplaces(mock_fetch, capsys):
    mock_fetch.return_value = [
        Workplace(workplace_id=7, workplace_name="City Clinic", workplace_type="Clinic", address="MG Road"),
        Workplace(workplace_id=8, workplace_name="Home Visits"),
    ]

    outcome = run.list_workplaces(4)

    out = capsys.readouterr().out
    assert "[WORKPLACE] 7 City Clinic (Clinic, MG Road)" in out
    assert "[WORKPLACE] 8 Home Visits" in out
    assert outcome == run.CommandOutcome(ok=True, message="2 workplaces")


@patch("clinic_booking.run.api.fetch_workplaces")
def test_list_workplaces_failure(mock_fetch):
    mock_fetch.side_effect = FetchError("Failed to fetch workplaces")

    assert run.list_workplaces(4) == run.CommandOutcome(ok=False, message="Failed to fetch workplaces")


@patch("clinic_booking.api.book_appointment")
@patch("clinic_booking.api.fetch_available_slots")
@patch("clinic_booking.api.search_doctors")
def test_book_matches_slot_label_loosely(mock_search, mock_fetch, mock_book):
    mock_search.return_value = [Doctor(doctor_id=4, workplaces=[Workplace(workplace_id=7)])]
    mock_fetch.return_value = SlotsResponse(slots_by_date={TOMORROW: ["2:30PM - 3:00PM"]})
    mock_book.return_value = BookingResult()

    outcome = run.book(1, "rao", "2:30 PM-3:00 PM")

    assert outcome.ok is True
    assert mock_book.call_args.args[1].slot == "2:30PM - 3:00PM"
