import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import requests

from clinic_booking import config
from clinic_booking.errors import AuthenticationRequired, ClinicBookingError, FetchError, SubmissionError
from clinic_booking.models import (
    ActionResult,
    BookingRequest,
    BookingResult,
    Doctor,
    Identifier,
    RescheduleRequest,
    RescheduleResult,
    SlotsResponse,
    UserAppointments,
    Workplace,
)

logger = logging.getLogger(__name__)

ResultModel = TypeVar("ResultModel", BookingResult, RescheduleResult, ActionResult)


def build_url(path: str) -> str:
    """Constructs the full API URL for a route."""
    return f"{config.API_BASE_URL}{path}"


def build_headers() -> Dict[str, str]:
    headers = dict(config.COMMON_HEADERS)
    if config.API_TOKEN:
        headers["Authorization"] = f"Bearer {config.API_TOKEN}"
    return headers


def extract_error_message(response: Optional[requests.Response], fallback: str) -> str:
    """Returns the backend's own error message if the response carries one."""
    if response is None:
        return fallback
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
        if isinstance(message, str) and message.strip():
            return message
    return fallback


def _request(
    method: str,
    path: str,
    error_cls: Type[ClinicBookingError],
    fallback_message: str,
    params: Optional[Dict[str, Any]] = None,
    body: Optional[Dict[str, Any]] = None,
) -> Any:
    """Sends a request and returns the decoded JSON body ({} when empty).

    Raises:
        AuthenticationRequired: on HTTP 401
        error_cls: on any other transport or HTTP failure
    """
    url = build_url(path)
    logger.info(f"{method} {url}")
    if body is not None:
        logger.debug(f"Request body: {body}")

    try:
        response = requests.request(
            method, url, params=params, json=body, headers=build_headers(), timeout=config.API_TIMEOUT
        )
        logger.debug(f"Response status: {response.status_code}")
        if response.status_code == 401:
            logger.warning("Session token rejected by the backend.")
            raise AuthenticationRequired()
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        failed = getattr(e, "response", None)
        logger.error(f"{method} {url} failed: {e}")
        raise error_cls(
            extract_error_message(failed, fallback_message),
            details={"status": getattr(failed, "status_code", None)},
        ) from e

    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        logger.warning(f"Non-JSON response from {url}")
        return {}


def _write_result(model: Type[ResultModel], data: Any) -> ResultModel:
    """Builds a write result; a bare string body becomes its message, any other non-object body is ignored."""
    if isinstance(data, dict):
        return model.model_validate(data)
    if data not in ({}, None, ""):
        logger.debug(f"Non-object response body: {data!r}")
    return model(message=data if isinstance(data, str) else "")


# --- Read operations ---


def fetch_available_slots(doctor_id: Identifier, workplace_id: Identifier, date: str | None = None) -> SlotsResponse:
    """Fetches bookable slots; without a date the backend returns its default window."""
    params: Dict[str, Any] = {"doctorId": doctor_id, "workplaceId": workplace_id}
    if date:
        params["date"] = date
        logger.info(f"Using specific date for slots: {date}")
    else:
        logger.info(f"Using default date range (next {config.DEFAULT_SLOT_WINDOW_DAYS} days)")

    data = _request("GET", "/api/user/available-slots", FetchError, "Failed to load available slots", params=params)
    if not isinstance(data, dict) or "slotsByDate" not in data:
        logger.warning(f"Response without slotsByDate: {data}")
        return SlotsResponse()
    return SlotsResponse.model_validate(data)


def search_doctors(keyword: str) -> List[Doctor]:
    """Searches doctors by name, specialization, clinic, area, city or pincode."""
    data = _request(
        "GET",
        "/api/doctors/search/enhanced",
        FetchError,
        "Failed to search doctors. Please check your internet connection and try again.",
        params={"keyword": keyword},
    )
    return [Doctor.model_validate(d) for d in data or []]


def search_nearby_doctors(pincode: str) -> List[Doctor]:
    data = _request(
        "GET", "/api/doctors/search/nearby", FetchError, "Failed to load nearby doctors", params={"location": pincode}
    )
    return [Doctor.model_validate(d) for d in data or []]


def fetch_all_user_appointments(user_id: Identifier) -> UserAppointments:
    data = _request("GET", f"/api/user/{user_id}/appointments/all", FetchError, "Failed to load appointments")
    return UserAppointments.model_validate(data or {})


def fetch_workplaces(doctor_id: Identifier) -> List[Workplace]:
    """Fetches a doctor's workplaces from the detailed profile."""
    data = _request("GET", f"/api/doctor/{doctor_id}", FetchError, "Failed to fetch workplaces")
    items = data.get("workplaces", []) if isinstance(data, dict) else data
    return [Workplace.model_validate(w) for w in items or []]


# --- Write operations ---


def book_appointment(user_id: Identifier, request: BookingRequest) -> BookingResult:
    data = _request(
        "POST",
        f"/api/user/{user_id}/appointments/book",
        SubmissionError,
        "Failed to book appointment. Please try again.",
        body=request.to_payload(),
    )
    return _write_result(BookingResult, data)


def reschedule_appointment(appointment_id: Identifier, request: RescheduleRequest) -> RescheduleResult:
    body = {**request.to_payload(), "appointmentId": appointment_id}
    data = _request(
        "PUT",
        "/api/user/appointments/reschedule",
        SubmissionError,
        "Failed to reschedule appointment. Please try again.",
        body=body,
    )
    return _write_result(RescheduleResult, data)


def complete_appointment(appointment_id: Identifier) -> Dict:
    return _request(
        "PUT",
        f"/api/doctors/appointments/{appointment_id}/complete",
        SubmissionError,
        "Failed to complete appointment. Please try again.",
    )


def bulk_reschedule_appointments(doctor_id: Identifier, payload: Dict[str, Any]) -> ActionResult:
    data = _request(
        "POST",
        f"/api/doctor/{doctor_id}/appointments/bulk-reschedule",
        SubmissionError,
        "Failed to reschedule appointments. Please try again.",
        body=payload,
    )
    return _write_result(ActionResult, data)


def cancel_workspace_day_appointments(workspace_id: Identifier, payload: Dict[str, Any]) -> ActionResult:
    data = _request(
        "POST",
        f"/api/doctor/workspaces/{workspace_id}/appointments/cancel-day",
        SubmissionError,
        "Failed to cancel appointments. Please try again.",
        body=payload,
    )
    return _write_result(ActionResult, data)


def cancel_appointment(appointment_id: Identifier, payload: Dict[str, Any]) -> None:
    _request(
        "PUT",
        f"/api/user/appointments/{appointment_id}/cancel",
        SubmissionError,
        "Failed to cancel appointment. Please try again or contact support.",
        body=payload,
    )
