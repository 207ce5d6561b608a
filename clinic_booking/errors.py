"""Error taxonomy for booking flows."""

from typing import Any, Dict, Optional


class ClinicBookingError(Exception):
    """Base exception for clinic booking."""

    def __init__(
        self, message: str, recoverable: bool = True, details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize clinic booking error.

        Args:
            message: User-facing error message
            recoverable: Whether the user can retry from the current step
            details: Additional error details (status code, response body)
        """
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


class ValidationError(ClinicBookingError):
    """A form field failed local validation before any request was made."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message, recoverable=True, details={"field": field})

    def __eq__(self, other):
        if not isinstance(other, ValidationError):
            return NotImplemented
        return self.field == other.field and self.message == other.message

    def __hash__(self):
        return hash((self.field, self.message))

    def __repr__(self) -> str:
        return f"ValidationError({self.field!r}, {self.message!r})"


class FetchError(ClinicBookingError):
    """A read request (slots, search, appointments) failed."""

    def __init__(self, message: str = "Failed to load data", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, recoverable=True, details=details)


class SubmissionError(ClinicBookingError):
    """A write request (book, reschedule, cancel, bulk action) failed."""

    def __init__(
        self, message: str = "Request failed. Please try again.", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, recoverable=True, details=details)


class AuthenticationRequired(ClinicBookingError):
    """The backend rejected the session token."""

    def __init__(self, message: str = "Your session has expired. Please sign in again."):
        super().__init__(message, recoverable=False)
