"""
Main Application Module for EventX

This module contains the Flask device shell. One EventXApp instance drives
one AppStore, the way a single phone or scanning kiosk holds one signed-in
session, and exposes the store's actions as JSON endpoints.
"""

import logging
from typing import Callable, Dict, Optional

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import load_config
from .exceptions import (
    DataValidationException,
    ErrorKind,
    EventNotFoundException,
    EventXException,
    NotRegisteredException,
)
from .models import EventStatus
from .qr import issue_payload, now_ms, render_ticket_png
from .repositories import DocumentStore, EventRepository, RepositoryFactory
from .services import (
    AttendanceService,
    AttendanceVerifier,
    DocumentIdentityProvider,
    IdentityProvider,
    ScannerSession,
)
from .storage import LocalStorage, create_storage
from .store import AppStore

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ALREADY_REGISTERED: 409,
    ErrorKind.CAPACITY_FULL: 409,
    ErrorKind.EMAIL_IN_USE: 409,
    ErrorKind.ADMIN_ROLE_MISMATCH: 403,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.MALFORMED_PAYLOAD: 400,
    ErrorKind.EVENT_NOT_STARTED: 422,
    ErrorKind.EVENT_ENDED: 422,
    ErrorKind.EXPIRED_CODE: 422,
    ErrorKind.NOT_REGISTERED: 422,
    ErrorKind.REMOTE_UNAVAILABLE: 503,
    ErrorKind.DATA_ACCESS_ERROR: 500,
}

GENERIC_ERROR = "Something went wrong. Please try again."


def validate_event_form(data: Dict) -> Dict:
    """
    Form-level validation done before an event reaches the repository

    Returns:
        Copy of data with maxCapacity converted to int

    Raises:
        DataValidationException: If maxCapacity is not a positive integer
    """
    cleaned = dict(data)
    if 'maxCapacity' in cleaned:
        try:
            capacity = int(cleaned['maxCapacity'])
        except (TypeError, ValueError):
            raise DataValidationException("maxCapacity", "Maximum capacity must be a number")
        if capacity <= 0:
            raise DataValidationException("maxCapacity", "Maximum capacity must be greater than 0")
        cleaned['maxCapacity'] = capacity
    return cleaned


def _error_response(message: str, status_code: int, error_code: str = None):
    return jsonify({"success": False, "error_code": error_code, "message": message}), status_code


class EventXApp:
    """
    Main Flask application class for EventX

    This class wires the document store, identity provider, repository,
    attendance services and application store together and registers the
    JSON endpoints.
    """

    def __init__(self, config: Optional[dict] = None, document_store: DocumentStore = None,
                 storage: LocalStorage = None, identity: IdentityProvider = None,
                 clock: Callable[[], int] = now_ms):
        """
        Initialize the EventX application

        Args:
            config: Optional configuration dictionary
            document_store: Overrides the configured document store
            storage: Overrides the configured local storage
            identity: Overrides the document-backed identity provider
            clock: Millisecond clock used for QR payloads
        """
        self.config = load_config(config)

        self.app = Flask(__name__)
        self._configure_app()

        self.document_store = document_store or RepositoryFactory.create_store(
            self.config['DOCUMENT_STORE'],
            uri=self.config['MONGO_URI'],
            database=self.config['MONGO_DB'],
        )
        self.storage = storage or create_storage(
            self.config['STORAGE'],
            file_path=self.config['SESSION_FILE'],
            url=self.config['REDIS_URL'],
        )
        self.identity = identity or DocumentIdentityProvider(self.document_store)
        self.clock = clock

        self.event_repository = EventRepository(self.document_store)
        self.attendance_service = AttendanceService(self.document_store)
        self.store = AppStore(self.identity, self.event_repository, self.storage)
        self.verifier = AttendanceVerifier(
            self.event_repository,
            self.attendance_service,
            clock=clock,
            validity_ms=int(self.config['QR_VALIDITY_HOURS']) * 60 * 60 * 1000,
        )
        self.scanner = ScannerSession(self.verifier, lambda: self.store.events)

        self._register_routes()
        self._register_error_handlers()

        self.store.initialize_user()

    def _configure_app(self) -> None:
        """Apply configuration to Flask and logging"""
        self.app.secret_key = self.config['SECRET_KEY']
        self.app.permanent_session_lifetime = self.config['PERMANENT_SESSION_LIFETIME']
        self.app.config['DEBUG'] = self.config['DEBUG']

        logging.basicConfig(
            level=getattr(logging, str(self.config['LOG_LEVEL']).upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    def _register_routes(self) -> None:
        """Register all Flask routes"""
        self.app.add_url_rule("/", "home", self.home)
        self.app.add_url_rule("/login", "login", self.login, methods=["POST"])
        self.app.add_url_rule("/register", "register", self.register, methods=["POST"])
        self.app.add_url_rule("/logout", "logout", self.logout, methods=["POST"])

        self.app.add_url_rule("/events", "events", self.list_events)
        self.app.add_url_rule("/events/refresh", "refresh_events", self.refresh_events, methods=["POST"])
        self.app.add_url_rule("/events/<event_id>", "event_details", self.event_details)
        self.app.add_url_rule("/events/<event_id>/register", "register_event",
                              self.register_event, methods=["POST"])
        self.app.add_url_rule("/events/<event_id>/unregister", "unregister_event",
                              self.unregister_event, methods=["POST"])
        self.app.add_url_rule("/events/<event_id>/ticket.png", "ticket", self.ticket)
        self.app.add_url_rule("/filters", "filters", self.filters, methods=["GET", "POST"])

        # Admin
        self.app.add_url_rule("/admin/events", "create_event", self.create_event, methods=["POST"])
        self.app.add_url_rule("/admin/events/<event_id>", "update_event",
                              self.update_event, methods=["PATCH"])
        self.app.add_url_rule("/admin/events/<event_id>", "delete_event",
                              self.delete_event, methods=["DELETE"])
        self.app.add_url_rule("/admin/events/<event_id>/status", "event_status",
                              self.change_status, methods=["POST"])
        self.app.add_url_rule("/admin/events/<event_id>/students", "registered_students",
                              self.registered_students)
        self.app.add_url_rule("/admin/events/<event_id>/attendance", "attendance_summary",
                              self.attendance_summary)
        self.app.add_url_rule("/admin/scan", "scan", self.scan, methods=["POST"])
        self.app.add_url_rule("/admin/scan/dismiss", "dismiss_scan", self.dismiss_scan, methods=["POST"])

    def _register_error_handlers(self) -> None:
        """Register error handlers for custom exceptions"""

        @self.app.errorhandler(EventXException)
        def handle_eventx_exception(e):
            return _error_response(e.message, STATUS_CODES.get(e.kind, 500), e.error_code)

        @self.app.errorhandler(Exception)
        def handle_unexpected(e):
            if isinstance(e, HTTPException):
                return e
            logger.exception("Unhandled error in %s", request.path)
            return _error_response(GENERIC_ERROR, 500)

    def _require_user(self):
        if not self.store.is_authenticated:
            return _error_response("Authentication required", 401)
        return None

    def _require_admin(self):
        denied = self._require_user()
        if denied:
            return denied
        if not self.store.user.is_admin:
            return _error_response("Admin privileges required", 403)
        return None

    def home(self):
        """Session overview"""
        user = self.store.user
        return jsonify({
            "authenticated": self.store.is_authenticated,
            "user": user.to_dict() if user else None,
            "event_count": len(self.store.events),
            "scanner": self.scanner.state.value,
        })

    def login(self):
        """
        Sign in with email and password

        Body: {"email", "password", "isAdmin"}
        """
        body = request.get_json(silent=True) or {}
        user = self.store.sign_in(
            body.get("email", ""),
            body.get("password", ""),
            bool(body.get("isAdmin", False)),
        )
        return jsonify({"success": True, "user": user.to_dict()})

    def register(self):
        body = request.get_json(silent=True) or {}
        password = body.pop("password", "")
        body.pop("isAdmin", None)
        user = self.store.sign_up(body, password)
        return jsonify({"success": True, "user": user.to_dict()}), 201

    def logout(self):
        self.store.sign_out()
        return jsonify({"success": True})

    def list_events(self):
        """
        Query params:
            status: upcoming | ongoing | completed, filtered by the explore filters
            tab: upcoming | ongoing | registered, unfiltered
        """
        status = request.args.get("status")
        tab = request.args.get("tab")
        if status:
            try:
                events = self.store.filtered_events(EventStatus(status))
            except ValueError:
                raise DataValidationException("status", f"Unknown status '{status}'")
        elif tab:
            events = self.store.events_for_tab(tab)
        else:
            events = self.store.filtered_events()
        return jsonify({"events": [event.to_dict() for event in events]})

    def refresh_events(self):
        events = self.store.load_events()
        return jsonify({"events": [event.to_dict() for event in events]})

    def event_details(self, event_id: str):
        event = self.store.get_event(event_id)
        if event is None:
            raise EventNotFoundException(event_id)
        self.store.select_event(event)
        return jsonify({"event": event.to_dict()})

    def register_event(self, event_id: str):
        denied = self._require_user()
        if denied:
            return denied
        self.store.register_for_event(event_id)
        event = self.store.get_event(event_id)
        return jsonify({"success": True, "event": event.to_dict() if event else None})

    def unregister_event(self, event_id: str):
        denied = self._require_user()
        if denied:
            return denied
        self.store.unregister_from_event(event_id)
        return jsonify({"success": True})

    def ticket(self, event_id: str):
        """PNG QR ticket for the signed-in user"""
        denied = self._require_user()
        if denied:
            return denied
        user = self.store.user
        if not user.is_registered_for(event_id):
            raise NotRegisteredException(event_id, user.id)
        payload = issue_payload(user.id, event_id, self.clock)
        response = Response(render_ticket_png(payload), mimetype="image/png")
        response.headers["Cache-Control"] = "no-store"
        return response

    def filters(self):
        if request.method == "POST":
            body = request.get_json(silent=True) or {}
            self.store.set_filters(
                filter_college=body.get("filterCollege"),
                filter_department=body.get("filterDepartment"),
                filter_date=body.get("filterDate"),
            )
        return jsonify(self.store.filters.to_dict())

    def create_event(self):
        denied = self._require_admin()
        if denied:
            return denied
        body = validate_event_form(request.get_json(silent=True) or {})
        event = self.event_repository.create_event(body, self.store.user.id)
        self.store.load_events()
        return jsonify({"success": True, "event": event.to_dict()}), 201

    def update_event(self, event_id: str):
        denied = self._require_admin()
        if denied:
            return denied
        body = validate_event_form(request.get_json(silent=True) or {})
        self.event_repository.update_event(event_id, body)
        self.store.load_events()
        return jsonify({"success": True})

    def delete_event(self, event_id: str):
        denied = self._require_admin()
        if denied:
            return denied
        self.event_repository.delete_event(event_id)
        self.store.load_events()
        return jsonify({"success": True})

    def change_status(self, event_id: str):
        """
        Set an event's status, or advance it one step when no status is given
        """
        denied = self._require_admin()
        if denied:
            return denied
        status = (request.get_json(silent=True) or {}).get("status")
        if status:
            self.event_repository.update_event(event_id, {"status": status})
        else:
            status = self.event_repository.cycle_status(event_id).value
        self.store.load_events()
        return jsonify({"success": True, "status": status})

    def registered_students(self, event_id: str):
        denied = self._require_admin()
        if denied:
            return denied
        students = self.event_repository.get_registered_students(event_id)
        return jsonify({"students": [student.to_dict() for student in students]})

    def attendance_summary(self, event_id: str):
        denied = self._require_admin()
        if denied:
            return denied
        return jsonify(self.attendance_service.get_attendance_summary(event_id))

    def scan(self):
        """
        Verify a scanned QR code

        Body: {"data": "<raw QR text>"}
        """
        denied = self._require_admin()
        if denied:
            return denied
        body = request.get_json(silent=True) or {}
        result = self.scanner.submit(body.get("data", ""))
        if result is None:
            return _error_response("Scanner is busy. Dismiss the current result first.", 409, "SCANNER_BUSY")
        return jsonify(result.to_dict()), 200 if result.success else 422

    def dismiss_scan(self):
        denied = self._require_admin()
        if denied:
            return denied
        self.scanner.dismiss()
        return jsonify({"success": True, "scanner": self.scanner.state.value})

    def run(self, host: str = '127.0.0.1', port: int = 5000, debug: bool = None) -> None:
        """
        Run the Flask application

        Args:
            host: Host address to bind to
            port: Port number to listen on
            debug: Debug mode (overrides config if provided)
        """
        if debug is not None:
            self.app.config['DEBUG'] = debug

        self.app.run(host=host, port=port, debug=self.app.config['DEBUG'])


def create_app(config: Optional[dict] = None, **kwargs) -> EventXApp:
    """
    Factory function to create and configure the application

    Args:
        config: Optional configuration dictionary
        **kwargs: Collaborator overrides passed to EventXApp
    """
    return EventXApp(config, **kwargs)


def create_development_app() -> EventXApp:
    dev_config = {
        'DEBUG': True,
        'LOG_LEVEL': 'DEBUG',
        'SECRET_KEY': 'dev-secret-key-change-in-production',
    }
    return create_app(dev_config)


def create_production_app() -> EventXApp:
    """
    Create application configured for production

    Uses MongoDB and Redis; connection settings come from EVENTX_* variables.
    """
    prod_config = {
        'DEBUG': False,
        'DOCUMENT_STORE': 'mongo',
        'STORAGE': 'redis',
    }
    return create_app(prod_config)


if __name__ == "__main__":
    create_development_app().run(debug=True)
