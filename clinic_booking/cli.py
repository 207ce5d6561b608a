import argparse
import logging
import sys
import time

from clinic_booking import config, run
from clinic_booking.models import BulkActionForm

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s]: %(name)s:%(lineno)d | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool):
    """Sends log records to stderr, stamped in local time."""
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    formatter.converter = time.localtime

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=[handler])


def _add_reason_arguments(parser: argparse.ArgumentParser, reasons):
    parser.add_argument("--reason", required=True, help=f"One of: {', '.join(reasons)}.")
    parser.add_argument("--custom-reason", default="", help='Free text, required with --reason "Other".')


def _add_date_arguments(parser: argparse.ArgumentParser, default: str):
    parser.add_argument(
        "--date-option",
        choices=["none", "today", "tomorrow", "custom"],
        default=default,
        help=f"Which day to act on. Defaults to {default}.",
    )
    parser.add_argument("--custom-date", default="", help="Date in YYYY-MM-DD format, with --date-option custom.")


def parse_arguments(argv=None):
    """Parses command line arguments."""
    parser = argparse.ArgumentParser(description="Book, reschedule and cancel clinic appointments.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    slots = commands.add_parser("slots", help="Show available slots of a workplace.")
    slots.add_argument("--doctor-id", required=True)
    slots.add_argument("--workplace-id", required=True)
    slots.add_argument("--date", help="Date in YYYY-MM-DD format. Defaults to the next "
                       f"{config.DEFAULT_SLOT_WINDOW_DAYS} days.")

    workplaces = commands.add_parser("workplaces", help="List a doctor's workplaces and their ids.")
    workplaces.add_argument("--doctor-id", required=True)

    book = commands.add_parser("book", help="Search for a doctor and book a slot.")
    book.add_argument("--user-id", required=True)
    book.add_argument("--query", required=True, help="Doctor name, clinic, area, city or pincode.")
    book.add_argument("--slot", required=True, help='Slot label, e.g. "10:00AM - 10:30AM".')
    book.add_argument("--workplace-id", help="Workplace to book at. Defaults to the first match.")
    book.add_argument("--date", help="Date in YYYY-MM-DD format. Defaults to the first date offering the slot.")

    reschedule = commands.add_parser("reschedule", help="Move one of your appointments to another slot.")
    reschedule.add_argument("--user-id", required=True)
    reschedule.add_argument("--appointment-id", required=True)
    reschedule.add_argument("--slot", required=True)
    reschedule.add_argument("--date")
    _add_reason_arguments(reschedule, config.RESCHEDULE_REASONS)

    revisit = commands.add_parser("revisit", help="Schedule a follow-up visit for a patient's appointment.")
    revisit.add_argument("--patient-id", required=True)
    revisit.add_argument("--appointment-id", required=True)
    revisit.add_argument("--slot", required=True)
    revisit.add_argument("--date")

    cancel = commands.add_parser("cancel", help="Cancel one of your appointments.")
    cancel.add_argument("--user-id", required=True)
    cancel.add_argument("--appointment-id", required=True)
    _add_reason_arguments(cancel, config.CANCELLATION_REASONS)

    bulk = commands.add_parser("bulk-reschedule", help="Shift or move all bookings at a workplace.")
    bulk.add_argument("--doctor-id", required=True)
    bulk.add_argument("--workspace-id", required=True, help="Workplace id, see the workplaces command.")
    bulk.add_argument("--extend-hours", default="")
    bulk.add_argument("--extend-minutes", default="")
    _add_date_arguments(bulk, "none")
    _add_reason_arguments(bulk, config.BULK_RESCHEDULE_REASONS)

    cancel_day = commands.add_parser("cancel-day", help="Cancel all bookings of one day at a workplace.")
    cancel_day.add_argument("--workspace-id", required=True, help="Workplace id, see the workplaces command.")
    _add_date_arguments(cancel_day, "today")
    _add_reason_arguments(cancel_day, config.CANCEL_DAY_REASONS)

    return parser.parse_args(argv)


def _form(args) -> BulkActionForm:
    return BulkActionForm(
        extend_hours=getattr(args, "extend_hours", None),
        extend_minutes=getattr(args, "extend_minutes", None),
        date_option=args.date_option,
        custom_date=args.custom_date,
        reason=args.reason,
        custom_reason=args.custom_reason,
    )


def dispatch(args) -> run.CommandOutcome:
    if args.command == "slots":
        return run.show_slots(args.doctor_id, args.workplace_id, args.date)
    if args.command == "workplaces":
        return run.list_workplaces(args.doctor_id)
    if args.command == "book":
        return run.book(args.user_id, args.query, args.slot, workplace_id=args.workplace_id, date=args.date)
    if args.command == "reschedule":
        return run.reschedule(
            args.user_id, args.appointment_id, args.slot, args.reason, date=args.date, custom_reason=args.custom_reason
        )
    if args.command == "revisit":
        return run.revisit(args.patient_id, args.appointment_id, args.slot, date=args.date)
    if args.command == "cancel":
        return run.cancel(args.user_id, args.appointment_id, args.reason, custom_reason=args.custom_reason)
    if args.command == "bulk-reschedule":
        return run.bulk_reschedule(args.doctor_id, args.workspace_id, _form(args))
    if args.command == "cancel-day":
        return run.cancel_day(args.workspace_id, _form(args))
    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    args = parse_arguments(argv)
    setup_logging(args.verbose)
    outcome = dispatch(args)
    run.print_outcome(outcome)
    if not outcome.ok:
        sys.exit(1)
