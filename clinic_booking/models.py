from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Literal, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from clinic_booking.errors import ValidationError

Identifier = int | str
DateOption = Literal["none", "today", "tomorrow", "custom"]
ActionMode = Literal["bulk_reschedule", "cancel_day"]


class ApiModel(BaseModel):
    """Base for models that cross the API boundary (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Backend sends explicit nulls for missing values; fall back to field defaults.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TimeOfDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    hours: int = Field(ge=0, le=23)
    minutes: int = Field(ge=0, le=59)


class Workplace(ApiModel):
    workplace_id: Identifier | None = Field(
        default=None, validation_alias=AliasChoices("workplaceId", "workplace_id", "id")
    )
    workplace_name: str = Field(default="", validation_alias=AliasChoices("workplaceName", "workplace_name", "clinicName"))
    workplace_type: str | None = None
    address: str | None = None
    contact_number: str | None = None
    doctor_id: Identifier | None = None
    doctor_name: str = ""
    specialization: str | None = None
    designation: str | None = None
    experience: int | str | None = None


class Doctor(ApiModel):
    doctor_id: Identifier | None = None
    doctor_name: str = ""
    specialization: str | None = None
    designation: str | None = None
    experience: int | str | None = None
    profile_image: str | None = None
    workplaces: List[Workplace] = []

    def bookable_workplaces(self) -> List[Workplace]:
        """Returns this doctor's workplaces carrying the doctor's own fields."""
        return [
            wp.model_copy(
                update={
                    "doctor_id": self.doctor_id,
                    "doctor_name": self.doctor_name,
                    "specialization": self.specialization,
                    "designation": self.designation,
                    "experience": self.experience,
                }
            )
            for wp in self.workplaces
        ]


class SlotsResponse(ApiModel):
    slots_by_date: Dict[str, List[str]] = {}
    doctor_name: str = ""
    workplace_name: str = ""
    doctor_id: Identifier | None = None
    workplace_id: Identifier | None = None


class SlotRecord(ApiModel):
    id: str
    date: str  # ISO format YYYY-MM-DD
    slot_time: str  # as sent by the backend, e.g. "10:00AM - 10:30AM"
    workplace_id: Identifier | None = None
    doctor_id: Identifier | None = None
    doctor_name: str = ""
    workplace_name: str = ""
    is_available: bool = True
    date_time: str | None = None  # YYYY-MM-DDTHH:MM:00, local


class SlotStore(BaseModel):
    dates: List[str] = []
    buckets_by_date: Dict[str, List[SlotRecord]] = {}

    def slots_for(self, date: str | None) -> List[SlotRecord] | None:
        """Returns the bucket for a date, or None if the date was not fetched."""
        if date is None:
            return None
        return self.buckets_by_date.get(date)

    def find_slot(self, date: str | None, slot_id: str) -> SlotRecord | None:
        for slot in self.slots_for(date) or []:
            if slot.id == slot_id:
                return slot
        return None

    def initial_date(self, requested: str | None = None) -> str | None:
        """Picks the date to show after a fetch: the requested one if present, else the first."""
        if requested and requested in self.buckets_by_date:
            return requested
        return self.dates[0] if self.dates else None

    @property
    def is_empty(self) -> bool:
        return not self.dates


class Appointment(ApiModel):
    id: Identifier | None = Field(default=None, validation_alias=AliasChoices("id", "appointmentId"))
    appointment_date: str = ""
    slot: str = Field(default="", validation_alias=AliasChoices("slot", "timeSlot"))
    status: str = ""
    workplace_id: Identifier | None = None
    workplace_name: str = ""
    doctor_id: Identifier | None = None
    doctor_name: str = ""
    queue_position: int | None = None
    user_id: Identifier | None = Field(default=None, validation_alias=AliasChoices("userId", "patientId"))
    patient_name: str = ""


class UserAppointments(ApiModel):
    appointments_by_date: Dict[str, List[Appointment]] = {}
    total_appointments: int = 0


class NoWorkplacesInfo(BaseModel):
    doctor_names: str
    doctor_count: int


# --- Requests ---


class BookingRequest(ApiModel):
    doctor_id: Identifier
    workplace_id: Identifier
    requested_time: str
    slot: str
    notes: str


class RescheduleRequest(ApiModel):
    appointment_id: Identifier
    reason: str
    new_appointment_date: str
    new_time_slot: str


class BulkActionForm(ApiModel):
    extend_hours: str | int | None = None
    extend_minutes: str | int | None = None
    date_option: DateOption = "none"
    custom_date: str = ""
    reason: str = ""
    custom_reason: str = ""


class BulkReschedulePayload(ApiModel):
    workspace_id: Identifier | None = None
    extend_hours: int = 0
    extend_minutes: int = 0
    # Backend expects an empty string, not null, when the date is unchanged.
    new_date: str = ""
    reason: str


class CancelDayPayload(ApiModel):
    date: str
    reason: str


class CancellationSelection(ApiModel):
    appointment_id: Identifier | None = None
    reason: str = ""
    custom_reason: str = ""


class CancellationRequest(ApiModel):
    appointment_id: Identifier
    reason: str
    cancelled_by: str = "user"

    def body(self) -> Dict[str, Any]:
        return {"reason": self.reason, "cancelledBy": self.cancelled_by}


# --- Responses ---


class BookingResult(ApiModel):
    workplace_name: str = ""
    slot: str = ""
    message: str = ""


class RescheduleResult(ApiModel):
    message: str = ""
    calendar_event_updated: bool | None = None


class ActionResult(ApiModel):
    message: str = ""
    cancelled_count: int | None = None


# --- Outcomes ---

T = TypeVar("T")


@dataclass
class ValidationOutcome(Generic[T]):
    payload: T | None = None
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors and self.payload is not None

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.errors]


@dataclass
class ActionOutcome:
    ok: bool
    message: str
    errors: List[ValidationError] = field(default_factory=list)
