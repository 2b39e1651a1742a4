"""
Data Repository Classes for EventX

This module implements the Repository pattern for remote data access. A
DocumentStore is the narrow interface to the document database holding the
users, events and attendance collections; EventRepository is the typed
access layer over the events collection and the only place where capacity
and duplicate-registration rules are checked against remote data.
"""

import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .exceptions import (
    AlreadyRegisteredException,
    CapacityFullException,
    DataValidationException,
    EventNotFoundException,
    EventXException,
    RemoteUnavailableException,
    UserNotFoundException,
)
from .models import Event, EventStatus, RegisteredStudent, User, utc_now_iso

logger = logging.getLogger(__name__)

USERS = "users"
EVENTS = "events"
ATTENDANCE = "attendance"

REQUIRED_EVENT_FIELDS = (
    "title", "description", "date", "time", "location",
    "college", "department", "organizer", "maxCapacity",
)

# Attempts at the conditional append before a lost race is reported as full
REGISTRATION_ATTEMPTS = 3


class DocumentStore(ABC):
    """
    Abstract base class for document stores

    Documents are plain dictionaries. Every document returned by a store
    carries its identifier under the 'id' key.
    """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        """
        Point read

        Returns:
            The document, or None if it does not exist
        """

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict) -> None:
        """Create or replace a document under a known id"""

    @abstractmethod
    def add(self, collection: str, data: Dict) -> str:
        """
        Create a document with a store-assigned id

        Returns:
            The new document id
        """

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict) -> bool:
        """
        Merge fields into an existing document

        Returns:
            False if the document does not exist
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """
        Remove a document

        Returns:
            True if a document was removed
        """

    @abstractmethod
    def array_union(self, collection: str, doc_id: str, field: str, value,
                    extra_fields: Optional[Dict] = None) -> bool:
        """Atomically add value to an array field unless already present"""

    @abstractmethod
    def array_remove(self, collection: str, doc_id: str, field: str, value,
                     extra_fields: Optional[Dict] = None) -> bool:
        """Atomically remove every occurrence of value from an array field"""

    @abstractmethod
    def append_if_room(self, collection: str, doc_id: str, field: str, value,
                       capacity_field: str, extra_fields: Optional[Dict] = None) -> bool:
        """
        Atomic conditional append

        Appends value to the array field only if the value is absent and the
        array is shorter than the document's capacity_field.

        Returns:
            True if the value was appended
        """

    @abstractmethod
    def query(self, collection: str, where: Optional[Dict] = None,
              order_by: Optional[str] = None) -> List[Dict]:
        """Equality-filtered query, optionally sorted ascending by one field"""

    @abstractmethod
    def ping(self) -> None:
        """
        Check connectivity

        Raises:
            RemoteUnavailableException: If the store cannot be reached
        """


class InMemoryDocumentStore(DocumentStore):
    """
    In-memory document store for testing and development

    All operations hold a single lock, so the conditional append is atomic
    across threads.
    """

    def __init__(self, initial_data: Optional[Dict[str, Dict[str, Dict]]] = None):
        """
        Initialize in-memory store

        Args:
            initial_data: Optional {collection: {doc_id: document}} mapping
        """
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict]] = {}
        for collection, documents in (initial_data or {}).items():
            for doc_id, data in documents.items():
                self.set(collection, doc_id, data)

    def _documents(self, collection: str) -> Dict[str, Dict]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _export(doc_id: str, data: Dict) -> Dict:
        document = copy.deepcopy(data)
        document["id"] = doc_id
        return document

    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        with self._lock:
            data = self._documents(collection).get(doc_id)
            if data is None:
                return None
            return self._export(doc_id, data)

    def set(self, collection: str, doc_id: str, data: Dict) -> None:
        with self._lock:
            document = copy.deepcopy(data)
            document.pop("id", None)
            self._documents(collection)[doc_id] = document

    def add(self, collection: str, data: Dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict) -> bool:
        with self._lock:
            document = self._documents(collection).get(doc_id)
            if document is None:
                return False
            document.update(copy.deepcopy(fields))
            document.pop("id", None)
            return True

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._documents(collection).pop(doc_id, None) is not None

    def array_union(self, collection: str, doc_id: str, field: str, value,
                    extra_fields: Optional[Dict] = None) -> bool:
        with self._lock:
            document = self._documents(collection).get(doc_id)
            if document is None:
                return False
            values = document.setdefault(field, [])
            if value not in values:
                values.append(value)
            document.update(extra_fields or {})
            return True

    def array_remove(self, collection: str, doc_id: str, field: str, value,
                     extra_fields: Optional[Dict] = None) -> bool:
        with self._lock:
            document = self._documents(collection).get(doc_id)
            if document is None:
                return False
            document[field] = [v for v in document.get(field, []) if v != value]
            document.update(extra_fields or {})
            return True

    def append_if_room(self, collection: str, doc_id: str, field: str, value,
                       capacity_field: str, extra_fields: Optional[Dict] = None) -> bool:
        with self._lock:
            document = self._documents(collection).get(doc_id)
            if document is None:
                return False
            values = document.setdefault(field, [])
            if value in values or len(values) >= int(document.get(capacity_field) or 0):
                return False
            values.append(value)
            document.update(extra_fields or {})
            return True

    def query(self, collection: str, where: Optional[Dict] = None,
              order_by: Optional[str] = None) -> List[Dict]:
        with self._lock:
            results = [
                self._export(doc_id, data)
                for doc_id, data in self._documents(collection).items()
                if all(data.get(key) == expected for key, expected in (where or {}).items())
            ]
        if order_by:
            results.sort(key=lambda doc: (doc.get(order_by) is None, doc.get(order_by) or ""))
        return results

    def ping(self) -> None:
        return None

    def clear(self) -> None:
        """Clear all collections"""
        with self._lock:
            self._collections.clear()


class MongoDocumentStore(DocumentStore):
    """
    MongoDB-backed document store

    Document ids are stored in '_id' as strings and exposed as 'id'. Driver
    errors are translated into RemoteUnavailableException.
    """

    def __init__(self, client: Optional[MongoClient] = None, uri: str = None,
                 database: str = "eventx", timeout_ms: int = 5000):
        """
        Initialize MongoDB store

        Args:
            client: Existing MongoClient (takes precedence over uri)
            uri: MongoDB connection string
            database: Database name
            timeout_ms: Server selection timeout for a new client
        """
        if client is None:
            client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        self.client = client
        self.db = client[database]

    @contextmanager
    def _remote(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as e:
            logger.error("MongoDB %s failed: %s", operation, e)
            raise RemoteUnavailableException(operation, str(e))

    @staticmethod
    def _export(document: Optional[Dict]) -> Optional[Dict]:
        if document is None:
            return None
        document = dict(document)
        document["id"] = str(document.pop("_id"))
        return document

    @staticmethod
    def _strip_id(data: Dict) -> Dict:
        return {key: value for key, value in data.items() if key not in ("id", "_id")}

    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        with self._remote(f"read {collection}/{doc_id}"):
            return self._export(self.db[collection].find_one({"_id": doc_id}))

    def set(self, collection: str, doc_id: str, data: Dict) -> None:
        with self._remote(f"write {collection}/{doc_id}"):
            self.db[collection].replace_one({"_id": doc_id}, self._strip_id(data), upsert=True)

    def add(self, collection: str, data: Dict) -> str:
        doc_id = uuid.uuid4().hex
        document = self._strip_id(data)
        document["_id"] = doc_id
        with self._remote(f"create in {collection}"):
            self.db[collection].insert_one(document)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict) -> bool:
        with self._remote(f"update {collection}/{doc_id}"):
            result = self.db[collection].update_one({"_id": doc_id}, {"$set": self._strip_id(fields)})
        return result.matched_count > 0

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._remote(f"delete {collection}/{doc_id}"):
            result = self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    def array_union(self, collection: str, doc_id: str, field: str, value,
                    extra_fields: Optional[Dict] = None) -> bool:
        update = {"$addToSet": {field: value}}
        if extra_fields:
            update["$set"] = extra_fields
        with self._remote(f"update {collection}/{doc_id}"):
            result = self.db[collection].update_one({"_id": doc_id}, update)
        return result.matched_count > 0

    def array_remove(self, collection: str, doc_id: str, field: str, value,
                     extra_fields: Optional[Dict] = None) -> bool:
        update = {"$pull": {field: value}}
        if extra_fields:
            update["$set"] = extra_fields
        with self._remote(f"update {collection}/{doc_id}"):
            result = self.db[collection].update_one({"_id": doc_id}, update)
        return result.matched_count > 0

    def append_if_room(self, collection: str, doc_id: str, field: str, value,
                       capacity_field: str, extra_fields: Optional[Dict] = None) -> bool:
        condition = {
            "_id": doc_id,
            field: {"$ne": value},
            "$expr": {"$lt": [{"$size": {"$ifNull": [f"${field}", []]}}, f"${capacity_field}"]},
        }
        update = {"$push": {field: value}}
        if extra_fields:
            update["$set"] = extra_fields
        with self._remote(f"conditional update {collection}/{doc_id}"):
            result = self.db[collection].find_one_and_update(
                condition, update, return_document=ReturnDocument.AFTER
            )
        return result is not None

    def query(self, collection: str, where: Optional[Dict] = None,
              order_by: Optional[str] = None) -> List[Dict]:
        with self._remote(f"query {collection}"):
            cursor = self.db[collection].find(where or {})
            if order_by:
                cursor = cursor.sort(order_by, ASCENDING)
            return [self._export(document) for document in cursor]

    def ping(self) -> None:
        with self._remote("ping"):
            self.client.admin.command("ping")


class RepositoryFactory:
    """
    Factory class for creating document stores

    This class provides a centralized way to create the configured
    document store backend.
    """

    @staticmethod
    def create_mongo_store(uri: str, database: str = "eventx") -> MongoDocumentStore:
        return MongoDocumentStore(uri=uri, database=database)

    @staticmethod
    def create_memory_store(initial_data: Optional[Dict] = None) -> InMemoryDocumentStore:
        return InMemoryDocumentStore(initial_data)

    @staticmethod
    def create_store(store_type: str, **kwargs) -> DocumentStore:
        """
        Create a document store based on type

        Args:
            store_type: Type of store ('mongo' or 'memory')
            **kwargs: Additional arguments for store creation

        Raises:
            ValueError: If store type is not supported
        """
        if store_type.lower() == "mongo":
            if "uri" not in kwargs:
                raise ValueError("uri is required for MongoDB store")
            return RepositoryFactory.create_mongo_store(kwargs["uri"], kwargs.get("database", "eventx"))

        elif store_type.lower() == "memory":
            return RepositoryFactory.create_memory_store(kwargs.get("initial_data"))

        else:
            raise ValueError(f"Unsupported document store type: {store_type}")


class EventRepository:
    """
    Typed access layer over the events collection

    Each mutating operation performs its own fresh read; there is no
    locking across operations.
    """

    def __init__(self, store: DocumentStore):
        """
        Initialize event repository

        Args:
            store: Document store holding the events and users collections
        """
        self.store = store

    def _to_events(self, documents: List[Dict]) -> List[Event]:
        events = []
        for document in documents:
            try:
                events.append(Event.from_dict(document))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping malformed event document %s: %s", document.get("id"), e)
        return events

    def _get_or_raise(self, event_id: str) -> Event:
        event = self.get_event_by_id(event_id)
        if event is None:
            raise EventNotFoundException(event_id)
        return event

    @staticmethod
    def _validate_status(fields: Dict) -> None:
        status = fields.get("status")
        if status is None:
            return
        if isinstance(status, EventStatus):
            fields["status"] = status.value
            return
        try:
            EventStatus(status)
        except ValueError:
            raise DataValidationException("status", f"Unknown status '{status}'")

    def get_all_events(self) -> List[Event]:
        """
        Get every event, sorted ascending by date then time

        Returns:
            List of events; ties fall back to the event id
        """
        events = self._to_events(self.store.query(EVENTS))
        events.sort(key=Event.sort_key)
        logger.debug("Fetched %d events", len(events))
        return events

    def get_events_by_status(self, status: EventStatus) -> List[Event]:
        return self._to_events(self.store.query(EVENTS, {"status": EventStatus(status).value}, order_by="date"))

    def get_events_by_college(self, college: str) -> List[Event]:
        return self._to_events(self.store.query(EVENTS, {"college": college}, order_by="date"))

    def get_events_by_department(self, department: str) -> List[Event]:
        return self._to_events(self.store.query(EVENTS, {"department": department}, order_by="date"))

    def search_events(self, term: str) -> List[Event]:
        """Case-insensitive search over title and description"""
        needle = term.lower()
        return [
            event for event in self.get_all_events()
            if needle in event.title.lower() or needle in event.description.lower()
        ]

    def get_user_registered_events(self, user_id: str) -> List[Event]:
        return [event for event in self.get_all_events() if event.is_registered(user_id)]

    def get_event_by_id(self, event_id: str) -> Optional[Event]:
        """
        Point read

        Returns:
            Event instance or None if not found
        """
        document = self.store.get(EVENTS, event_id)
        if document is None:
            return None
        return Event.from_dict(document)

    def create_event(self, data: Dict, created_by: str) -> Event:
        """
        Create a new event

        Args:
            data: Event fields (camelCase); status defaults to upcoming
            created_by: Id of the creating admin

        Raises:
            DataValidationException: If a required field is missing
        """
        for field_name in REQUIRED_EVENT_FIELDS:
            if data.get(field_name) in (None, ""):
                raise DataValidationException(field_name, "This field is required")

        document = {key: value for key, value in data.items() if key != "id"}
        document["status"] = document.get("status") or EventStatus.UPCOMING.value
        self._validate_status(document)
        now = utc_now_iso()
        document.update({
            "registeredUsers": [],
            "attendees": [],
            "createdAt": now,
            "updatedAt": now,
            "createdBy": created_by,
        })
        event_id = self.store.add(EVENTS, document)
        logger.info("Event %s created by %s", event_id, created_by)
        return Event.from_dict(document, event_id)

    def update_event(self, event_id: str, fields: Dict) -> None:
        """
        Merge fields into an existing event

        Raises:
            EventNotFoundException: If the event does not exist
        """
        updates = {key: value for key, value in fields.items() if key != "id"}
        self._validate_status(updates)
        updates["updatedAt"] = utc_now_iso()
        if not self.store.update(EVENTS, event_id, updates):
            raise EventNotFoundException(event_id)
        logger.info("Event %s updated: %s", event_id, sorted(updates))

    def delete_event(self, event_id: str) -> None:
        """Delete an event; deleting a missing event succeeds"""
        if self.store.delete(EVENTS, event_id):
            logger.info("Event %s deleted", event_id)
        else:
            logger.debug("Event %s already absent", event_id)

    def cycle_status(self, event_id: str) -> EventStatus:
        """
        Advance an event along upcoming -> ongoing -> completed -> upcoming

        Returns:
            The new status
        """
        event = self._get_or_raise(event_id)
        new_status = event.status.next()
        self.update_event(event_id, {"status": new_status.value})
        return new_status

    def register_for_event(self, event_id: str, user_id: str) -> None:
        """
        Add a user to an event's registered users

        The append is a conditional update at the store, so concurrent
        callers cannot push the event past its capacity.

        Raises:
            EventNotFoundException: If the event does not exist
            AlreadyRegisteredException: If the user is already registered
            CapacityFullException: If the event is full
        """
        for _ in range(REGISTRATION_ATTEMPTS):
            event = self._get_or_raise(event_id)
            if event.is_registered(user_id):
                raise AlreadyRegisteredException(event_id, user_id)
            if event.is_full:
                raise CapacityFullException(event_id, event.max_capacity)
            if self.store.append_if_room(EVENTS, event_id, "registeredUsers", user_id,
                                         "maxCapacity", {"updatedAt": utc_now_iso()}):
                logger.info("User %s registered for event %s", user_id, event_id)
                return
            logger.info("Registration of %s for %s lost a concurrent update, re-reading", user_id, event_id)
        raise CapacityFullException(event_id)

    def unregister_from_event(self, event_id: str, user_id: str) -> None:
        """
        Raises:
            EventNotFoundException: If the event does not exist
        """
        if not self.store.array_remove(EVENTS, event_id, "registeredUsers", user_id,
                                       {"updatedAt": utc_now_iso()}):
            raise EventNotFoundException(event_id)
        logger.info("User %s unregistered from event %s", user_id, event_id)

    def get_user_data(self, user_id: str) -> User:
        """
        Raises:
            UserNotFoundException: If the user does not exist
        """
        document = self.store.get(USERS, user_id)
        if document is None:
            raise UserNotFoundException(user_id)
        return User.from_dict(document, user_id)

    def get_registered_students(self, event_id: str) -> List[RegisteredStudent]:
        """
        Resolve the profiles of everyone registered for an event

        Users that are missing or fail to load are skipped; the rest are
        still returned.

        Raises:
            EventNotFoundException: If the event does not exist
        """
        event = self._get_or_raise(event_id)
        students = []
        for user_id in event.registered_users:
            try:
                document = self.store.get(USERS, user_id)
            except Exception:
                logger.exception("Error fetching user %s for event %s", user_id, event_id)
                continue
            if document is None:
                logger.warning("Registered user %s of event %s has no profile", user_id, event_id)
                continue
            students.append(RegisteredStudent.from_user_document(user_id, document))
        return students

    def test_connection(self) -> bool:
        try:
            self.store.ping()
            return True
        except EventXException as e:
            logger.error("Document store connection test failed: %s", e)
            return False
