"""Doctor-side bulk actions on one workplace: shift or move a day's bookings, or cancel them.

`validate` is pure and returns every problem it finds; the submit helpers only call
the API once the form is valid.
"""

import logging
import re
from datetime import date, timedelta
from typing import Any, Callable, List, Tuple

from clinic_booking import api, config
from clinic_booking.errors import ClinicBookingError, ValidationError
from clinic_booking.models import (
    ActionMode,
    ActionOutcome,
    ActionResult,
    BulkActionForm,
    BulkReschedulePayload,
    CancelDayPayload,
    Identifier,
    ValidationOutcome,
)
from clinic_booking.slots import is_past_date, local_iso, parse_iso_date

logger = logging.getLogger(__name__)

DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")


def effective_date_option(form: BulkActionForm, mode: ActionMode) -> str:
    # A day cancellation always targets a concrete day.
    if mode == "cancel_day" and form.date_option == "none":
        return "today"
    return form.date_option


def resolved_date(form: BulkActionForm, today: date, mode: ActionMode = "bulk_reschedule") -> str:
    """Turns the date option into YYYY-MM-DD, or '' when the date does not change."""
    option = effective_date_option(form, mode)
    if option == "today":
        return local_iso(today)
    if option == "tomorrow":
        return local_iso(today + timedelta(days=1))
    if option == "custom":
        return form.custom_date
    return ""


def parse_extension(value: str | int | None, field: str) -> Tuple[int | None, List[ValidationError]]:
    """Reads one time-extension input. Blank means "not given".

    Text is read by its leading integer, so "90" is 90 and "1.5" is 1. Only input
    with no leading digits is rejected.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, []
    if not isinstance(value, str):
        return int(value), []
    match = LEADING_INTEGER.match(value)
    if match is None:
        return None, [ValidationError(field, "Time extension must be a number")]
    return int(match.group(1)), []


def _reason_errors(form: BulkActionForm, mode: ActionMode) -> List[ValidationError]:
    action = "rescheduling" if mode == "bulk_reschedule" else "cancellation"
    if not form.reason.strip():
        return [ValidationError("reason", f"Please provide a reason for {action}")]
    if form.reason == config.OTHER_REASON and not form.custom_reason.strip():
        return [ValidationError("custom_reason", f"Please provide a reason for {action}")]
    return []


def _date_errors(form: BulkActionForm, mode: ActionMode, today: date) -> List[ValidationError]:
    if effective_date_option(form, mode) != "custom":
        return []
    value = form.custom_date
    if not value.strip():
        return [ValidationError("custom_date", "Please enter a custom date")]
    if not DATE_FORMAT.match(value) or parse_iso_date(value) is None:
        return [ValidationError("custom_date", "Please enter date in YYYY-MM-DD format")]
    if is_past_date(value, today):
        return [ValidationError("custom_date", "Date cannot be in the past")]
    return []


def final_reason(form: BulkActionForm) -> str:
    if form.reason == config.OTHER_REASON:
        return form.custom_reason.strip()
    return form.reason.strip()


def validate(
    form: BulkActionForm, mode: ActionMode, today: date, workspace_id: Identifier | None = None
) -> ValidationOutcome:
    """Checks the form for the given action and builds its payload.

    Args:
        form: Raw form values as entered
        mode: "bulk_reschedule" or "cancel_day"
        today: Local calendar date used for today/tomorrow and the past-date check
        workspace_id: Sent with a bulk reschedule when known

    Returns:
        ValidationOutcome with a BulkReschedulePayload or CancelDayPayload, or the errors
    """
    errors: List[ValidationError] = []

    if mode == "bulk_reschedule":
        hours, hour_errors = parse_extension(form.extend_hours, "extend_hours")
        minutes, minute_errors = parse_extension(form.extend_minutes, "extend_minutes")
        errors += hour_errors + minute_errors
        has_extension = hours is not None or minutes is not None
        if not hour_errors and not minute_errors and not has_extension and form.date_option == "none":
            errors.append(ValidationError("form", "Please specify either time extension or date change"))
    elif mode != "cancel_day":
        raise ValueError(f"Unknown bulk action: {mode}")

    errors += _date_errors(form, mode, today)
    errors += _reason_errors(form, mode)

    if errors:
        logger.debug(f"Bulk action form rejected: {[e.message for e in errors]}")
        return ValidationOutcome(errors=errors)

    if mode == "cancel_day":
        return ValidationOutcome(payload=CancelDayPayload(date=resolved_date(form, today, mode), reason=final_reason(form)))

    return ValidationOutcome(
        payload=BulkReschedulePayload(
            workspace_id=workspace_id,
            extend_hours=hours or 0,
            extend_minutes=minutes or 0,
            new_date=resolved_date(form, today, mode),
            reason=final_reason(form),
        )
    )


def _submit(
    outcome: ValidationOutcome,
    target: Identifier | None,
    send: Callable[[Identifier, dict], ActionResult],
    success_message: str,
) -> ActionOutcome:
    if not outcome.ok:
        return ActionOutcome(ok=False, message=outcome.messages[0], errors=outcome.errors)
    if target is None:
        return ActionOutcome(ok=False, message="Invalid workplace selected")

    payload: Any = outcome.payload.to_payload()
    try:
        result = send(target, payload)
    except ClinicBookingError as e:
        logger.error(f"Bulk action failed: {e.message}")
        return ActionOutcome(ok=False, message=e.message)
    return ActionOutcome(ok=True, message=result.message or success_message)


def submit_bulk_reschedule(
    doctor_id: Identifier | None,
    workspace_id: Identifier | None,
    form: BulkActionForm,
    today: date,
    send: Callable[[Identifier, dict], ActionResult] | None = None,
) -> ActionOutcome:
    if workspace_id is None:
        return ActionOutcome(ok=False, message="Invalid workplace selected")
    outcome = validate(form, "bulk_reschedule", today, workspace_id)
    logger.info(f"Bulk rescheduling workplace {workspace_id} for doctor {doctor_id}")
    return _submit(
        outcome,
        doctor_id,
        send or api.bulk_reschedule_appointments,
        "Appointments have been rescheduled successfully",
    )


def submit_cancel_day(
    workspace_id: Identifier | None,
    form: BulkActionForm,
    today: date,
    send: Callable[[Identifier, dict], ActionResult] | None = None,
) -> ActionOutcome:
    outcome = validate(form, "cancel_day", today)
    logger.info(f"Cancelling day at workplace {workspace_id}")
    return _submit(
        outcome,
        workspace_id,
        send or api.cancel_workspace_day_appointments,
        "All appointments for the selected date have been cancelled successfully",
    )
