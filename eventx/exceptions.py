"""
Custom Exceptions for EventX

This module defines the closed set of error kinds the EventX core can
raise. Every exception carries a human-readable message that can be shown
to the user as-is, a stable error code for programmatic handling, and the
identifiers involved in the failure.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Closed enumeration of caller-facing error kinds"""
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    CAPACITY_FULL = "CAPACITY_FULL"
    NOT_FOUND = "NOT_FOUND"
    ADMIN_ROLE_MISMATCH = "ADMIN_ROLE_MISMATCH"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    EVENT_NOT_STARTED = "EVENT_NOT_STARTED"
    EVENT_ENDED = "EVENT_ENDED"
    EXPIRED_CODE = "EXPIRED_CODE"
    NOT_REGISTERED = "NOT_REGISTERED"
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DATA_ACCESS_ERROR = "DATA_ACCESS_ERROR"


class EventXException(Exception):
    """
    Base exception for EventX

    All custom exceptions in the EventX system inherit from this base
    class so callers can catch every known failure in one place.
    """

    kind: ErrorKind = None

    def __init__(self, message: str, error_code: str = None):
        """
        Initialize EventX exception

        Args:
            message: Human-readable error message
            error_code: Optional error code, defaults to the kind's value
        """
        super().__init__(message)
        self.message = message
        if error_code is None and self.kind is not None:
            error_code = self.kind.value
        self.error_code = error_code

    def __str__(self) -> str:
        """String representation of the exception"""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class AlreadyRegisteredException(EventXException):
    """Raised when a user registers for an event they already joined"""

    kind = ErrorKind.ALREADY_REGISTERED

    def __init__(self, event_id: str, user_id: str = None):
        super().__init__("Already registered for this event")
        self.event_id = event_id
        self.user_id = user_id


class CapacityFullException(EventXException):
    """Raised when an event has no free seats left"""

    kind = ErrorKind.CAPACITY_FULL

    def __init__(self, event_id: str, max_capacity: int = None):
        super().__init__("Event is at full capacity")
        self.event_id = event_id
        self.max_capacity = max_capacity


class NotFoundException(EventXException):
    """
    Raised when a document does not exist

    Args:
        entity: Kind of document that was looked up ('event', 'user')
        entity_id: Identifier that was not found
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id


class EventNotFoundException(NotFoundException):
    """Raised when an event id does not resolve"""

    def __init__(self, event_id: str):
        super().__init__("event", event_id)
        self.event_id = event_id


class UserNotFoundException(NotFoundException):
    """Raised when a user id does not resolve"""

    def __init__(self, user_id: str):
        super().__init__("user", user_id)
        self.user_id = user_id


class AdminRoleMismatchException(EventXException):
    """
    Raised when the requested login role does not match the account

    This is thrown both when an admin login is attempted with a student
    account and when a student login is attempted with an admin account.
    """

    kind = ErrorKind.ADMIN_ROLE_MISMATCH

    def __init__(self, user_id: str, wants_admin: bool):
        if wants_admin:
            message = "Admin access denied. This account is not an admin."
        else:
            message = "Student access denied. This account is an admin account."
        super().__init__(message)
        self.user_id = user_id
        self.wants_admin = wants_admin


class MalformedPayloadException(EventXException):
    """Raised when a scanned QR payload cannot be understood"""

    kind = ErrorKind.MALFORMED_PAYLOAD

    def __init__(self, details: str = None):
        message = "Invalid QR code format"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)
        self.details = details


class EventNotStartedException(EventXException):
    """Raised when attendance is scanned for an upcoming event"""

    kind = ErrorKind.EVENT_NOT_STARTED

    def __init__(self, event_id: str):
        super().__init__("Event has not started yet")
        self.event_id = event_id


class EventEndedException(EventXException):
    """Raised when attendance is scanned for a completed event"""

    kind = ErrorKind.EVENT_ENDED

    def __init__(self, event_id: str):
        super().__init__("Event has already ended")
        self.event_id = event_id


class ExpiredCodeException(EventXException):
    """Raised when a QR payload is older than the validity window"""

    kind = ErrorKind.EXPIRED_CODE

    def __init__(self, event_id: str, user_id: str, age_ms: int):
        super().__init__("QR code has expired")
        self.event_id = event_id
        self.user_id = user_id
        self.age_ms = age_ms


class NotRegisteredException(EventXException):
    """Raised when the scanned user is not registered for the event"""

    kind = ErrorKind.NOT_REGISTERED

    def __init__(self, event_id: str, user_id: str):
        super().__init__("User is not registered for this event")
        self.event_id = event_id
        self.user_id = user_id


class RemoteUnavailableException(EventXException):
    """
    Raised when the document store or identity provider is unreachable

    Args:
        operation: The remote operation that failed
        details: Detailed error information from the driver
    """

    kind = ErrorKind.REMOTE_UNAVAILABLE

    def __init__(self, operation: str, details: str = ""):
        message = f"Service unavailable during {operation}. Check your connection."
        super().__init__(message)
        self.operation = operation
        self.details = details


class InvalidCredentialsException(EventXException):
    """Raised when an email/password pair is rejected"""

    kind = ErrorKind.INVALID_CREDENTIALS

    def __init__(self, email: str = None):
        super().__init__("Invalid email or password")
        self.email = email


class EmailAlreadyInUseException(EventXException):
    """Raised when registering with an email that already has an account"""

    kind = ErrorKind.EMAIL_IN_USE

    def __init__(self, email: str):
        super().__init__("User with this email already exists")
        self.email = email


class DataValidationException(EventXException):
    """
    Raised when data validation fails

    Args:
        field_name: Name of the field that failed validation
        validation_error: Description of the validation error
    """

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, field_name: str, validation_error: str):
        message = f"Validation error in field '{field_name}': {validation_error}"
        super().__init__(message)
        self.field_name = field_name
        self.validation_error = validation_error


class DataAccessException(EventXException):
    """
    Raised when local storage reads or writes fail

    Args:
        operation: The operation that failed (e.g., 'read', 'write')
        details: Detailed error information
    """

    kind = ErrorKind.DATA_ACCESS_ERROR

    def __init__(self, operation: str, details: str, key: Optional[str] = None):
        message = f"Data access error during {operation}: {details}"
        super().__init__(message)
        self.operation = operation
        self.details = details
        self.key = key
