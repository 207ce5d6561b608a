import logging
import os
from typing import Dict, List

logger = logging.getLogger(__name__)

# --- URLs & API ---
# 10.0.2.2 is the host machine as seen from the Android emulator.
API_BASE_URL = os.environ.get("CLINIC_API_BASE_URL", "http://10.0.2.2:8080").rstrip("/")
API_TOKEN = os.environ.get("CLINIC_API_TOKEN")
API_TIMEOUT = float(os.environ.get("CLINIC_API_TIMEOUT", "10"))

COMMON_HEADERS: Dict[str, str] = {
    "Accept": "application/json, text/plain, */*",
    "Content-Type": "application/json",
    "User-Agent": os.environ.get("CLINIC_USER_AGENT", "clinic-booking/0.1"),
}

# --- Slots ---
# The backend answers an available-slots request without a date with this many days.
DEFAULT_SLOT_WINDOW_DAYS = 3
DEFAULT_TIME_HOURS = 9
DEFAULT_TIME_MINUTES = 0

# --- Appointment statuses ---
STATUS_BOOKED = "BOOKED"
STATUS_RESCHEDULED = "RESCHEDULED"
STATUS_CANCELLED = "CANCELLED"
STATUS_COMPLETED = "COMPLETED"
TERMINAL_STATUSES = (STATUS_CANCELLED, STATUS_COMPLETED)

# --- Reasons ---
OTHER_REASON = "Other"

CANCELLATION_REASONS: List[str] = [
    "Personal emergency",
    "Schedule conflict",
    "Feeling better",
    "Doctor unavailable",
    "Travel issues",
    "Work commitment",
    "Family emergency",
    OTHER_REASON,
]

DOCTOR_CANCEL_REASONS: List[str] = [
    "Patient rescheduled",
    "Doctor emergency",
    "Medical emergency elsewhere",
    "Equipment unavailable",
    "Patient no-show",
    "Administrative error",
    "Health concerns",
    OTHER_REASON,
]

RESCHEDULE_REASONS: List[str] = [
    "Schedule conflict",
    "Work commitment",
    "Travel issues",
    "Feeling unwell",
    "Family emergency",
    "Prefer another time",
    OTHER_REASON,
]

BULK_RESCHEDULE_REASONS: List[str] = [
    "Schedule change",
    "Doctor running late",
    "Doctor emergency",
    "Clinic closed",
    "Equipment unavailable",
    OTHER_REASON,
]

CANCEL_DAY_REASONS: List[str] = [
    "Doctor unavailable",
    "Doctor emergency",
    "Public holiday",
    "Clinic closed",
    "Equipment unavailable",
    OTHER_REASON,
]

REVISIT_REASON = "Follow-up visit scheduled by doctor"
BOOKING_NOTES = "Booked via mobile app"
CANCELLED_BY_USER = "user"

if not API_TOKEN:
    logger.warning("CLINIC_API_TOKEN not set. Requests will be sent without authorization.")
