import logging
from dataclasses import dataclass
from typing import List

from clinic_booking import config
from clinic_booking.models import Appointment, Identifier, UserAppointments

logger = logging.getLogger(__name__)


def flatten_appointments(data: UserAppointments) -> List[Appointment]:
    """Flattens the date-grouped appointments response, earliest date first."""
    return [apt for day in sorted(data.appointments_by_date) for apt in data.appointments_by_date[day]]


def active_bookings(data: UserAppointments) -> List[Appointment]:
    """Appointments that can still be rescheduled or cancelled by the patient."""
    return [apt for apt in flatten_appointments(data) if apt.status == config.STATUS_BOOKED]


def find_appointment(data: UserAppointments, appointment_id: Identifier) -> Appointment | None:
    # Route params arrive as strings, the backend sends numbers.
    target = str(appointment_id)
    for apt in flatten_appointments(data):
        if apt.id is not None and str(apt.id) == target:
            return apt
    logger.debug(f"Appointment {appointment_id} not found")
    return None


@dataclass
class RefreshCounter:
    """Signals "appointments changed elsewhere" from a parent view to its children.

    The parent bumps the counter; each child remembers the last value it loaded at.
    """

    value: int = 0

    def bump(self) -> int:
        self.value += 1
        return self.value

    def needs_refresh(self, last_seen: int) -> bool:
        return self.value != last_seen
