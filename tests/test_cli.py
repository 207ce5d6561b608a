from unittest.mock import patch

import pytest

from clinic_booking import cli, run


@patch("clinic_booking.cli.run.show_slots")
@patch("clinic_booking.cli.setup_logging")
def test_main_shows_slots(mock_logging, mock_show):
    mock_show.return_value = run.CommandOutcome(ok=True, message="2 slots across 1 dates")

    cli.main(["-v", "slots", "--doctor-id", "4", "--workplace-id", "7", "--date", "2025-03-11"])

    mock_logging.assert_called_once_with(True)
    mock_show.assert_called_once_with("4", "7", "2025-03-11")


@patch("clinic_booking.cli.run.book")
@patch("clinic_booking.cli.setup_logging")
def test_main_book(mock_logging, mock_book):
    mock_book.return_value = run.CommandOutcome(ok=True, message="Booked")

    cli.main(["book", "--user-id", "1", "--query", "rao", "--slot", "10:00AM - 10:30AM"])

    mock_book.assert_called_once_with("1", "rao", "10:00AM - 10:30AM", workplace_id=None, date=None)


@patch("clinic_booking.cli.run.cancel")
@patch("clinic_booking.cli.setup_logging")
def test_main_exits_non_zero_on_failure(mock_logging, mock_cancel):
    mock_cancel.return_value = run.CommandOutcome(ok=False, message="Appointment not found")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["cancel", "--user-id", "1", "--appointment-id", "9", "--reason", "Feeling better"])

    assert excinfo.value.code == 1
    mock_cancel.assert_called_once_with("1", "9", "Feeling better", custom_reason="")


@patch("clinic_booking.cli.run.bulk_reschedule")
@patch("clinic_booking.cli.setup_logging")
def test_main_bulk_reschedule_builds_form(mock_logging, mock_bulk):
    mock_bulk.return_value = run.CommandOutcome(ok=True, message="done")

    cli.main(
        ["bulk-reschedule", "--doctor-id", "4", "--workspace-id", "7", "--extend-hours", "30", "--reason", "Schedule change"]
    )

    doctor_id, workspace_id, form = mock_bulk.call_args.args
    assert (doctor_id, workspace_id) == ("4", "7")
    assert form.extend_hours == "30"
    assert form.extend_minutes == ""
    assert form.date_option == "none"
    assert form.reason == "Schedule change"


@patch("clinic_booking.cli.run.cancel_day")
@patch("clinic_booking.cli.setup_logging")
def test_main_cancel_day_defaults_to_today(mock_logging, mock_cancel_day):
    mock_cancel_day.return_value = run.CommandOutcome(ok=True, message="done")

    cli.main(["cancel-day", "--workspace-id", "7", "--reason", "Public holiday"])

    workspace_id, form = mock_cancel_day.call_args.args
    assert workspace_id == "7"
    assert form.date_option == "today"
    assert form.extend_hours is None


def test_subcommand_is_required():
    with pytest.raises(SystemExit):
        cli.parse_arguments([])


@patch("clinic_booking.cli.run.list_workplaces")
@patch("clinic_booking.cli.setup_logging")
def test_main_lists_workplaces(mock_logging, mock_list):
    mock_list.return_value = run.CommandOutcome(ok=True, message="2 workplaces")

    cli.main(["workplaces", "--doctor-id", "4"])

    mock_list.assert_called_once_with("4")
