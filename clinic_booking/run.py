import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List

from clinic_booking import api, bulk_actions, config, timeparse
from clinic_booking.appointments import find_appointment
from clinic_booking.booking import BookingWizard, confirmation_prompt
from clinic_booking.cancellation import CancellationFlow
from clinic_booking.errors import ClinicBookingError
from clinic_booking.flow import WizardDriver
from clinic_booking.models import ActionOutcome, BulkActionForm, Identifier, SlotStore, Workplace
from clinic_booking.reschedule import RescheduleWizard
from clinic_booking.slots import build_slot_store, default_window, local_today

logger = logging.getLogger(__name__)


@dataclass
class CommandOutcome:
    ok: bool
    message: str


# --- Reports ---


def print_slot_report(store: SlotStore, day: str):
    """Prints the slots of one date to stdout."""
    slots = store.slots_for(day) or []

    print(f"\n--- Available slots for {day} ---")

    for slot in slots:
        start = timeparse.format_12h(timeparse.slot_start(slot.slot_time))
        print(f"[AVAILABLE] {slot.slot_time} (starts {start})")

    if slots:
        print(f"Summary: Found {len(slots)} available slots for {day}!")
    else:
        print(f"Summary: No slots available for {day}.")


def print_slot_reports(store: SlotStore, window: List[str] | None = None):
    """Prints every date of the store, plus any date of `window` the backend left out."""
    days = sorted(set(store.dates) | set(window or []))
    if not days:
        print("\nNo upcoming dates with slots.")
        return
    for day in days:
        print_slot_report(store, day)


def print_workplaces(workplaces: List[Workplace]):
    print("\n--- Workplaces ---")
    for wp in workplaces:
        details = ", ".join(part for part in (wp.workplace_type, wp.address) if part)
        suffix = f" ({details})" if details else ""
        print(f"[WORKPLACE] {wp.workplace_id} {wp.workplace_name}{suffix}")


def print_outcome(outcome: CommandOutcome):
    prefix = "[OK]   " if outcome.ok else "[ERROR]"
    print(f"\n{prefix} {outcome.message}")


# --- Commands ---


def show_slots(
    doctor_id: Identifier,
    workplace_id: Identifier,
    date: str | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> CommandOutcome:
    """Fetches and prints the bookable slots of one workplace.

    Without a date the report covers the backend's default window, so a day the
    backend leaves out still shows up as having no slots.
    """
    try:
        response = api.fetch_available_slots(doctor_id, workplace_id, date)
    except ClinicBookingError as e:
        logger.error(f"Could not load slots: {e.to_dict()}")
        return CommandOutcome(ok=False, message=e.message)

    now = clock()
    store = build_slot_store(response.slots_by_date, now, context=response)
    logger.info(f"Fetched slots for {len(store.dates)} dates")
    window = default_window(local_today(now), config.DEFAULT_SLOT_WINDOW_DAYS) if date is None else []
    print_slot_reports(store, window)
    total = sum(len(store.slots_for(d) or []) for d in store.dates)
    return CommandOutcome(ok=True, message=f"{total} slots across {len(store.dates)} dates")


def list_workplaces(doctor_id: Identifier) -> CommandOutcome:
    """Prints a doctor's workplaces, whose ids the bulk actions take."""
    try:
        workplaces = api.fetch_workplaces(doctor_id)
    except ClinicBookingError as e:
        logger.error(f"Could not load workplaces: {e.to_dict()}")
        return CommandOutcome(ok=False, message=e.message)

    if not workplaces:
        return CommandOutcome(ok=False, message="No workplaces found for this doctor")
    print_workplaces(workplaces)
    return CommandOutcome(ok=True, message=f"{len(workplaces)} workplaces")


def _slot_key(label: str) -> str:
    """Normalizes a "start - end" label so "2:30 PM-3:00 PM" matches "2:30PM - 3:00PM"."""
    if "-" not in label:
        return label.strip()
    start, end = label.split("-", 1)
    return timeparse.format_slot_range(start, end)


def _select_slot_by_time(wizard: WizardDriver, slot_time: str) -> bool:
    """Walks forward through the loaded dates until a slot with this label is found and selects it."""
    wanted = _slot_key(slot_time)
    while True:
        for slot in wizard.state.current_slots:
            if slot.slot_time == slot_time or _slot_key(slot.slot_time) == wanted:
                wizard.select_slot(slot.id)
                return wizard.state.selected_slot is not None
        cursor = wizard.cursor
        if cursor is None or not cursor.has_next:
            return False
        wizard.next()


def _load_wizard_slots(wizard, date: str | None) -> str | None:
    """Returns an error message, or None once slots are loaded."""
    if date:
        wizard.pick_date(date)
    if wizard.state.error:
        return wizard.state.error
    if wizard.state.store.is_empty:
        return "No available slots"
    return None


def book(
    user_id: Identifier,
    query: str,
    slot_time: str,
    workplace_id: Identifier | None = None,
    date: str | None = None,
) -> CommandOutcome:
    """Searches, picks a workplace (the first one unless given) and books the slot with this label."""
    wizard = BookingWizard(user_id)
    state = wizard.search(query)
    if state.step != "workplaces":
        return CommandOutcome(ok=False, message=state.error or "Search failed")
    if state.no_workplaces is not None:
        return CommandOutcome(
            ok=False, message=f"{state.no_workplaces.doctor_names} has no workplaces available for booking"
        )

    candidates = [wp for wp in state.workplaces if workplace_id is None or str(wp.workplace_id) == str(workplace_id)]
    if not candidates:
        return CommandOutcome(ok=False, message=f"Workplace {workplace_id} not found for '{query}'")

    wizard.choose_workplace(candidates[0])
    error = _load_wizard_slots(wizard, date)
    if error:
        return CommandOutcome(ok=False, message=error)
    if not _select_slot_by_time(wizard, slot_time):
        return CommandOutcome(ok=False, message=f"Slot '{slot_time}' is not available")

    logger.debug(confirmation_prompt(wizard.state))
    state = wizard.confirm()
    if state.step != "done":
        return CommandOutcome(ok=False, message=state.error or "Booking failed")
    return CommandOutcome(ok=True, message=state.confirmation)


def _finish_reschedule(wizard: RescheduleWizard, date: str | None, slot_time: str) -> CommandOutcome | None:
    if wizard.state.step != "select_slot":
        return CommandOutcome(ok=False, message=wizard.state.error or "Appointment not available")
    error = _load_wizard_slots(wizard, date)
    if error:
        return CommandOutcome(ok=False, message=error)
    if not _select_slot_by_time(wizard, slot_time):
        return CommandOutcome(ok=False, message=f"Slot '{slot_time}' is not available")
    return None


def reschedule(
    user_id: Identifier,
    appointment_id: Identifier,
    slot_time: str,
    reason: str,
    date: str | None = None,
    custom_reason: str = "",
) -> CommandOutcome:
    wizard = RescheduleWizard(user_id, mode="direct", appointment_id=appointment_id)
    wizard.start()
    failed = _finish_reschedule(wizard, date, slot_time)
    if failed:
        return failed

    wizard.proceed()
    wizard.select_reason(reason)
    if custom_reason:
        wizard.set_custom_reason(custom_reason)
    state = wizard.proceed()
    if state.step != "confirm":
        return CommandOutcome(ok=False, message=state.error or "Reason required")

    state = wizard.confirm()
    if state.step != "done":
        return CommandOutcome(ok=False, message=state.error or "Reschedule failed")
    return CommandOutcome(ok=True, message=state.result_message)


def revisit(patient_id: Identifier, appointment_id: Identifier, slot_time: str, date: str | None = None) -> CommandOutcome:
    """Books a follow-up for a patient's appointment and closes the original."""
    try:
        data = api.fetch_all_user_appointments(patient_id)
    except ClinicBookingError as e:
        return CommandOutcome(ok=False, message=e.message)

    appointment = find_appointment(data, appointment_id)
    if appointment is None:
        return CommandOutcome(ok=False, message="Appointment not found")

    wizard = RescheduleWizard(patient_id, mode="revisit", appointment=appointment)
    wizard.start()
    failed = _finish_reschedule(wizard, date, slot_time)
    if failed:
        return failed

    wizard.proceed()
    state = wizard.confirm()
    if state.step != "done":
        return CommandOutcome(ok=False, message=state.error or "Follow-up booking failed")
    if state.secondary_error:
        logger.warning(f"Original appointment not marked as completed: {state.secondary_error}")
    return CommandOutcome(ok=True, message=state.result_message)


def cancel(user_id: Identifier, appointment_id: Identifier, reason: str, custom_reason: str = "") -> CommandOutcome:
    flow = CancellationFlow(user_id)
    state = flow.start(appointment_id)
    if state.step != "select_reason":
        return CommandOutcome(ok=False, message=state.error or "Appointment cannot be cancelled")

    flow.select_reason(reason)
    if custom_reason:
        flow.set_custom_reason(custom_reason)
    state = flow.confirm()
    if state.step != "done":
        return CommandOutcome(ok=False, message=state.error or "Cancellation failed")
    return CommandOutcome(ok=True, message=state.result_message)


def _from_action(outcome: ActionOutcome) -> CommandOutcome:
    return CommandOutcome(ok=outcome.ok, message=outcome.message)


def bulk_reschedule(
    doctor_id: Identifier,
    workspace_id: Identifier,
    form: BulkActionForm,
    clock: Callable[[], datetime] = datetime.now,
) -> CommandOutcome:
    return _from_action(bulk_actions.submit_bulk_reschedule(doctor_id, workspace_id, form, local_today(clock())))


def cancel_day(
    workspace_id: Identifier,
    form: BulkActionForm,
    clock: Callable[[], datetime] = datetime.now,
) -> CommandOutcome:
    return _from_action(bulk_actions.submit_cancel_day(workspace_id, form, local_today(clock())))
