"""
EventX Package

Client-side state and synchronization core for a campus event application:
event browsing and registration, admin event management, and QR-based
attendance. The application store keeps the signed-in user and the event
list in sync with a remote document store.

Main Components:
- models: Data models for users, events, attendance records and filters
- repositories: Document store backends and the event repository
- storage: Durable local storage for the session cache
- services: Identity provider, attendance service, verifier and scanner
- store: The application store
- qr: QR ticket payloads
- app: Flask device shell

Usage:
    from eventx import create_app

    app = create_app()
    app.run()
"""

__version__ = "1.0.0"

from .app import create_app, create_development_app, create_production_app
from .models import (
    AttendanceRecord,
    DateFilter,
    Event,
    EventStatus,
    Filters,
    RegisteredStudent,
    User,
)
from .repositories import (
    DocumentStore,
    EventRepository,
    InMemoryDocumentStore,
    MongoDocumentStore,
    RepositoryFactory,
)
from .storage import InMemoryStorage, JSONFileStorage, LocalStorage, RedisStorage
from .services import (
    AttendanceService,
    AttendanceVerifier,
    DocumentIdentityProvider,
    IdentityProvider,
    ScannerSession,
    ScanResult,
)
from .store import ActionStatus, AppState, AppStore
from .qr import QRPayload, issue_payload, parse_payload
from .exceptions import (
    AdminRoleMismatchException,
    AlreadyRegisteredException,
    CapacityFullException,
    DataAccessException,
    DataValidationException,
    EmailAlreadyInUseException,
    ErrorKind,
    EventEndedException,
    EventNotFoundException,
    EventNotStartedException,
    EventXException,
    ExpiredCodeException,
    InvalidCredentialsException,
    MalformedPayloadException,
    NotFoundException,
    NotRegisteredException,
    RemoteUnavailableException,
    UserNotFoundException,
)

__all__ = [
    # App factory functions
    'create_app',
    'create_development_app',
    'create_production_app',

    # Data models
    'AttendanceRecord',
    'DateFilter',
    'Event',
    'EventStatus',
    'Filters',
    'RegisteredStudent',
    'User',
    'QRPayload',

    # Repositories and storage
    'DocumentStore',
    'EventRepository',
    'InMemoryDocumentStore',
    'MongoDocumentStore',
    'RepositoryFactory',
    'LocalStorage',
    'InMemoryStorage',
    'JSONFileStorage',
    'RedisStorage',

    # Services
    'AttendanceService',
    'AttendanceVerifier',
    'DocumentIdentityProvider',
    'IdentityProvider',
    'ScannerSession',
    'ScanResult',
    'issue_payload',
    'parse_payload',

    # Store
    'ActionStatus',
    'AppState',
    'AppStore',

    # Exceptions
    'ErrorKind',
    'EventXException',
    'AdminRoleMismatchException',
    'AlreadyRegisteredException',
    'CapacityFullException',
    'DataAccessException',
    'DataValidationException',
    'EmailAlreadyInUseException',
    'EventEndedException',
    'EventNotFoundException',
    'EventNotStartedException',
    'ExpiredCodeException',
    'InvalidCredentialsException',
    'MalformedPayloadException',
    'NotFoundException',
    'NotRegisteredException',
    'RemoteUnavailableException',
    'UserNotFoundException',
]
