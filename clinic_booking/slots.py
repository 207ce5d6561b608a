import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from clinic_booking import timeparse
from clinic_booking.models import SlotRecord, SlotsResponse, SlotStore, Workplace

logger = logging.getLogger(__name__)


# --- Local calendar helpers ---
# Dates are always derived from local y/m/d components. Never go through UTC
# (isoformat of an aware datetime, or a timestamp), it shifts the day near midnight.


def local_today(now: Optional[datetime] = None) -> date:
    """Returns the local calendar date for `now` (defaults to the current time)."""
    now = now or datetime.now()
    return date(now.year, now.month, now.day)


def local_iso(day: date) -> str:
    """Formats a date as YYYY-MM-DD from its own components."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def parse_iso_date(value: str) -> Optional[date]:
    """Parses the date part of "YYYY-MM-DD" or "YYYY-MM-DDTHH:MM:SS", None if invalid."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip().split("T")[0])
    except ValueError:
        return None


def is_past_date(value: str, today: date) -> bool:
    """True if the ISO date lies strictly before `today`."""
    parsed = parse_iso_date(value)
    return parsed is not None and parsed < today


def default_window(today: date, days: int) -> List[str]:
    """Dates the backend covers when no explicit date is requested."""
    return [local_iso(today + timedelta(days=i)) for i in range(days)]


# --- Slot store ---


def build_slot_records(
    day_iso: str,
    time_slots: List[str],
    context: SlotsResponse | None = None,
    workplace: Workplace | None = None,
    exclude_slot: str | None = None,
) -> List[SlotRecord]:
    """Turns the raw time strings of one date into SlotRecords.

    The id is "<date>-<index>" with the index taken from the raw list, so ids stay
    stable even when the excluded slot is dropped.
    """
    context = context or SlotsResponse()
    workplace = workplace or Workplace()
    workplace_id = context.workplace_id if context.workplace_id is not None else workplace.workplace_id
    doctor_id = context.doctor_id if context.doctor_id is not None else workplace.doctor_id

    records = []
    for index, time_slot in enumerate(time_slots):
        if exclude_slot is not None and time_slot == exclude_slot:
            logger.debug(f"Excluding current slot {time_slot} on {day_iso}")
            continue
        start = timeparse.slot_start(time_slot)
        records.append(
            SlotRecord(
                id=f"{day_iso}-{index}",
                date=day_iso,
                slot_time=time_slot,
                workplace_id=workplace_id,
                doctor_id=doctor_id,
                doctor_name=context.doctor_name or workplace.doctor_name,
                workplace_name=context.workplace_name or workplace.workplace_name,
                is_available=True,
                date_time=f"{day_iso}T{timeparse.to_api_string(start)}:00",
            )
        )
    return records


def build_slot_store(
    raw_slots_by_date: Dict[str, List[str]],
    reference_now: datetime,
    context: SlotsResponse | None = None,
    workplace: Workplace | None = None,
    exclude_slot: str | None = None,
    exclude_date: str | None = None,
) -> SlotStore:
    """Normalizes raw date -> time strings into a sorted, future-only SlotStore.

    Args:
        raw_slots_by_date: Mapping of ISO date (optionally with a time suffix) to slot labels
        reference_now: Local "now"; dates before its calendar day are dropped
        context: Slots response supplying doctor/workplace ids and names
        workplace: Fallback for ids and names missing from the response
        exclude_slot: Slot label to drop (the appointment being rescheduled)
        exclude_date: If set, only drop `exclude_slot` on this date

    Returns:
        SlotStore whose dates are ascending; a retained date with no slots keeps an empty bucket
    """
    today = local_today(reference_now)
    buckets: Dict[str, List[SlotRecord]] = {}

    for raw_date, time_slots in raw_slots_by_date.items():
        day = parse_iso_date(raw_date)
        if day is None:
            logger.warning(f"Skipping slots for unparseable date {raw_date!r}")
            continue
        if day < today:
            logger.debug(f"Dropping past date {raw_date}")
            continue

        day_iso = local_iso(day)
        excluded = exclude_slot if exclude_date is None or exclude_date == day_iso else None
        buckets[day_iso] = build_slot_records(day_iso, list(time_slots or []), context, workplace, excluded)

    dates = sorted(buckets.keys())
    logger.debug(f"Built slot store with {len(dates)} dates: {dates}")
    return SlotStore(dates=dates, buckets_by_date={d: buckets[d] for d in dates})


class DateCursor:
    """Previous/next navigation over the store's dates. Never wraps, never raises."""

    def __init__(self, dates: List[str], current: str | None):
        self.dates = list(dates)
        self.current = current if current in self.dates else (self.dates[0] if self.dates else None)

    @property
    def index(self) -> int:
        return self.dates.index(self.current) if self.current is not None else -1

    @property
    def position(self) -> int:
        """1-based position for "Day 2 of 3" style display, 0 when empty."""
        return self.index + 1

    @property
    def total(self) -> int:
        return len(self.dates)

    @property
    def has_prev(self) -> bool:
        return self.index > 0

    @property
    def has_next(self) -> bool:
        return 0 <= self.index < len(self.dates) - 1

    def prev(self) -> str | None:
        if self.has_prev:
            self.current = self.dates[self.index - 1]
        return self.current

    def next(self) -> str | None:
        if self.has_next:
            self.current = self.dates[self.index + 1]
        return self.current
