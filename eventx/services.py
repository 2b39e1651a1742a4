"""
Business Logic Services for EventX

This module contains the service classes that sit on top of the document
store: the identity provider that authenticates users and owns their
profile documents, the attendance service that records check-ins, the
attendance verifier that turns a scanned QR payload into an attendance
fact, and the scanner session that allows one verification at a time.
"""

import logging
import re
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from werkzeug.security import check_password_hash, generate_password_hash

from .exceptions import (
    AdminRoleMismatchException,
    DataValidationException,
    EmailAlreadyInUseException,
    EventEndedException,
    EventNotFoundException,
    EventNotStartedException,
    EventXException,
    ExpiredCodeException,
    InvalidCredentialsException,
    NotRegisteredException,
    UserNotFoundException,
)
from .models import AttendanceRecord, Event, EventStatus, User, utc_now_iso
from .qr import QRPayload, now_ms, parse_payload
from .repositories import ATTENDANCE, EVENTS, USERS, DocumentStore, EventRepository

logger = logging.getLogger(__name__)

CREDENTIALS = "credentials"
MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PROFILE_FIELDS = ("name", "email", "phone", "college", "department")

QR_VALIDITY_MS = 24 * 60 * 60 * 1000
GENERIC_SCAN_ERROR = "Failed to process QR code"


class IdentityProvider(ABC):
    """
    Interface to the identity provider

    The provider authenticates email/password pairs, owns user profile
    documents and knows who the current caller is.
    """

    @abstractmethod
    def login(self, email: str, password: str, wants_admin: bool = False) -> User:
        """
        Raises:
            InvalidCredentialsException: If the credentials are rejected
            AdminRoleMismatchException: If the account role differs from wants_admin
        """

    @abstractmethod
    def register(self, profile: Dict, password: str) -> User:
        """Create an account and its profile, signing the new user in"""

    @abstractmethod
    def get_current_user(self) -> Optional[User]:
        """Authoritative record of the signed-in user, None if unavailable"""

    @abstractmethod
    def update_user_profile(self, user_id: str, fields: Dict) -> None:
        """Merge fields (camelCase) into the user's profile document"""

    @abstractmethod
    def logout(self) -> None:
        """End the provider session"""


class DocumentIdentityProvider(IdentityProvider):
    """
    Identity provider backed by the document store

    Profiles live in the users collection; password hashes live in a
    separate credentials collection keyed by the same id so they never
    appear in profile reads.
    """

    def __init__(self, store: DocumentStore):
        """
        Args:
            store: Document store holding users and credentials
        """
        self.store = store
        self._current_user_id: Optional[str] = None

    @property
    def current_user_id(self) -> Optional[str]:
        return self._current_user_id

    def _validate_registration(self, email: str, password: str) -> None:
        if not EMAIL_PATTERN.match(email):
            raise DataValidationException("email", "Please provide a valid email address")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise DataValidationException(
                "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if self.store.query(CREDENTIALS, {"email": email}):
            raise EmailAlreadyInUseException(email)

    def register(self, profile: Dict, password: str) -> User:
        """
        Create a new account

        Args:
            profile: name, email, phone, college, department and optional isAdmin
            password: Plain-text password

        Raises:
            DataValidationException: If email or password are invalid
            EmailAlreadyInUseException: If the email already has an account
        """
        email = (profile.get("email") or "").strip().lower()
        self._validate_registration(email, password)

        user_id = uuid.uuid4().hex
        now = utc_now_iso()
        document = {field_name: profile.get(field_name, "") for field_name in PROFILE_FIELDS}
        document.update({
            "id": user_id,
            "email": email,
            "isAdmin": bool(profile.get("isAdmin", False)),
            "registeredEvents": [],
            "createdAt": now,
            "updatedAt": now,
        })
        self.store.set(CREDENTIALS, user_id, {
            "email": email,
            "passwordHash": generate_password_hash(password),
        })
        self.store.set(USERS, user_id, document)
        self._current_user_id = user_id
        logger.info("Registered new account %s", user_id)
        return User.from_dict(document, user_id)

    def login(self, email: str, password: str, wants_admin: bool = False) -> User:
        """
        Authenticate and sign in

        Args:
            email: Account email
            password: Plain-text password
            wants_admin: True for an admin login, False for a student login

        Raises:
            InvalidCredentialsException: If the credentials are rejected
            UserNotFoundException: If the account has no profile document
            AdminRoleMismatchException: If the account role differs from wants_admin
        """
        email = (email or "").strip().lower()
        matches = self.store.query(CREDENTIALS, {"email": email}) if email else []
        if not matches or not check_password_hash(matches[0].get("passwordHash", ""), password or ""):
            raise InvalidCredentialsException(email)

        user_id = matches[0]["id"]
        document = self.store.get(USERS, user_id)
        if document is None:
            raise UserNotFoundException(user_id)

        user = User.from_dict(document, user_id)
        if bool(wants_admin) != user.is_admin:
            self._current_user_id = None
            raise AdminRoleMismatchException(user_id, bool(wants_admin))

        self._current_user_id = user_id
        logger.info("User %s signed in (admin=%s)", user_id, user.is_admin)
        return user

    def get_current_user(self) -> Optional[User]:
        if self._current_user_id is None:
            return None
        try:
            document = self.store.get(USERS, self._current_user_id)
        except EventXException as e:
            logger.error("Could not fetch current user %s: %s", self._current_user_id, e)
            return None
        if document is None:
            return None
        return User.from_dict(document, self._current_user_id)

    def update_user_profile(self, user_id: str, fields: Dict) -> None:
        """
        Raises:
            UserNotFoundException: If the user does not exist
        """
        updates = {key: value for key, value in fields.items() if key != "id"}
        updates["updatedAt"] = utc_now_iso()
        if not self.store.update(USERS, user_id, updates):
            raise UserNotFoundException(user_id)

    def logout(self) -> None:
        self._current_user_id = None


class AttendanceService:
    """
    Records attendance and answers attendance queries

    Each successful scan inserts a new document into the attendance
    collection and adds the user to the event's attendees.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def mark_attendance(self, event_id: str, user_id: str) -> AttendanceRecord:
        """
        Mark a user as present at an event

        The attendance insert and the attendees update are two separate
        writes; a failure of the second leaves the first in place.

        Raises:
            EventNotFoundException: If the event disappeared before the update
        """
        record = AttendanceRecord.create_new(event_id, user_id)
        self.store.add(ATTENDANCE, record.to_dict())
        if not self.store.array_union(EVENTS, event_id, "attendees", user_id):
            logger.error("Attendance recorded for %s but event %s is gone", user_id, event_id)
            raise EventNotFoundException(event_id)
        logger.info("Attendance marked for user %s at event %s", user_id, event_id)
        return record

    def get_attendance_for_event(self, event_id: str) -> List[AttendanceRecord]:
        documents = self.store.query(ATTENDANCE, {"eventId": event_id}, order_by="timestamp")
        return [AttendanceRecord.from_dict(document) for document in documents]

    def get_attendance_summary(self, event_id: str) -> Dict:
        """
        Get attendance statistics for one event

        Returns:
            Dictionary with scan count, distinct attendees and records
        """
        records = self.get_attendance_for_event(event_id)
        present = []
        for record in records:
            if record.user_id not in present:
                present.append(record.user_id)
        return {
            'event_id': event_id,
            'total_scans': len(records),
            'unique_attendees': len(present),
            'present_user_ids': present,
            'records': [record.to_dict() for record in records],
        }


@dataclass
class ScanResult:
    """Outcome of one verification, ready to show to the scanning admin"""
    success: bool
    message: str
    user_name: Optional[str] = None
    event_title: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'message': self.message,
            'user_name': self.user_name,
            'event_title': self.event_title,
            'error_code': self.error_code,
        }


class AttendanceVerifier:
    """
    Validates scanned QR payloads and records attendance

    Checks run in a fixed order and stop at the first failure: payload
    shape, event lookup in the caller's event list, event status,
    registration, payload age. The age limit is inclusive and payloads
    dated in the future are accepted.
    """

    def __init__(self, event_repository: EventRepository, attendance_service: AttendanceService,
                 clock: Callable[[], int] = now_ms, validity_ms: int = QR_VALIDITY_MS):
        """
        Args:
            event_repository: Used to resolve the scanned user's profile
            attendance_service: Used to record attendance
            clock: Returns the current time in ms since the epoch
            validity_ms: Maximum payload age
        """
        self.event_repository = event_repository
        self.attendance_service = attendance_service
        self.clock = clock
        self.validity_ms = validity_ms

    def validate(self, raw: Union[str, bytes, Dict], events: List[Event]) -> Tuple[QRPayload, Event]:
        """
        Run the gating checks without writing anything

        Raises:
            MalformedPayloadException, EventNotFoundException,
            EventNotStartedException, EventEndedException,
            NotRegisteredException, ExpiredCodeException
        """
        payload = parse_payload(raw)

        event = next((e for e in events if e.id == payload.event_id), None)
        if event is None:
            raise EventNotFoundException(payload.event_id)

        if event.status is EventStatus.UPCOMING:
            raise EventNotStartedException(event.id)
        if event.status is EventStatus.COMPLETED:
            raise EventEndedException(event.id)

        if not event.is_registered(payload.user_id):
            raise NotRegisteredException(event.id, payload.user_id)

        age = payload.age_ms(self.clock())
        if age > self.validity_ms:
            raise ExpiredCodeException(event.id, payload.user_id, age)

        return payload, event

    def verify(self, raw: Union[str, bytes, Dict], events: List[Event]) -> ScanResult:
        """
        Validate a scanned payload and record attendance

        Args:
            raw: Scanned QR data
            events: The caller's current in-memory event list

        Returns:
            ScanResult; known failures carry their own message, anything
            unexpected is reported with a generic message
        """
        try:
            payload, event = self.validate(raw, events)
            user = self.event_repository.get_user_data(payload.user_id)
            self.attendance_service.mark_attendance(event.id, payload.user_id)
        except EventXException as e:
            logger.info("Scan rejected: %s", e)
            return ScanResult(success=False, message=e.message, error_code=e.error_code)
        except Exception:
            logger.exception("Unexpected error while processing QR code")
            return ScanResult(success=False, message=GENERIC_SCAN_ERROR)

        return ScanResult(
            success=True,
            message=f"Attendance marked for {user.name} • {event.title}",
            user_name=user.name,
            event_title=event.title,
        )


class ScannerState(Enum):
    """Scanner lifecycle between frames"""
    SCANNING = "scanning"
    VERIFYING = "verifying"
    SHOWING_RESULT = "showing_result"


class ScannerSession:
    """
    Admin scanner that accepts one code at a time

    After a code is submitted, further submissions are ignored until the
    result has been dismissed.
    """

    def __init__(self, verifier: AttendanceVerifier, events_provider: Callable[[], List[Event]]):
        """
        Args:
            verifier: Attendance verifier
            events_provider: Returns the current in-memory event list
        """
        self.verifier = verifier
        self.events_provider = events_provider
        self.state = ScannerState.SCANNING
        self.last_result: Optional[ScanResult] = None
        self._lock = threading.Lock()

    @property
    def is_accepting(self) -> bool:
        return self.state is ScannerState.SCANNING

    def submit(self, raw: Union[str, bytes, Dict]) -> Optional[ScanResult]:
        """
        Verify a scanned code

        Returns:
            The result, or None if the scanner is not accepting input
        """
        with self._lock:
            if self.state is not ScannerState.SCANNING:
                logger.debug("Scanner busy (%s), ignoring frame", self.state.value)
                return None
            self.state = ScannerState.VERIFYING

        result = None
        try:
            result = self.verifier.verify(raw, self.events_provider())
        finally:
            with self._lock:
                self.last_result = result
                self.state = ScannerState.SHOWING_RESULT if result else ScannerState.SCANNING
        return result

    def dismiss(self) -> None:
        """Acknowledge the current result and resume scanning"""
        with self._lock:
            if self.state is ScannerState.SHOWING_RESULT:
                self.state = ScannerState.SCANNING
                self.last_result = None
