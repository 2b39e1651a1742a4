"""
Application Store for EventX

AppStore owns the in-memory snapshot of the signed-in user, the event list
and the explore filters. Consumers read `store.state` and change it only
through the store's actions. Each action replaces the snapshot in a single
assignment; hazards between actions exist only across remote calls.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Callable, Dict, List, Optional

from .exceptions import AlreadyRegisteredException, DataValidationException, EventXException
from .models import Event, EventStatus, Filters, User
from .repositories import EventRepository
from .sample_data import sample_events
from .services import IdentityProvider
from .storage import LocalStorage

logger = logging.getLogger(__name__)

USER_KEY = "user"


class ActionStatus(Enum):
    """Progress of a mutating store action"""
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionRecord:
    name: str
    target_id: str
    status: ActionStatus
    error: Optional[Exception] = None


@dataclass(frozen=True)
class AppState:
    """Immutable snapshot of the store"""
    user: Optional[User] = None
    is_authenticated: bool = False
    events: List[Event] = field(default_factory=list)
    selected_event: Optional[Event] = None
    filters: Filters = field(default_factory=Filters)
    actions: Dict[tuple, ActionRecord] = field(default_factory=dict)


class AppStore:
    """
    Central application state

    Combines identity provider and event repository calls with local state
    transitions. Read paths degrade to safe defaults; write paths raise.
    """

    def __init__(self, identity: IdentityProvider, events: EventRepository, storage: LocalStorage,
                 fallback_events: Callable[[], List[Event]] = sample_events,
                 today: Callable[[], date] = date.today):
        """
        Args:
            identity: Identity provider
            events: Event repository
            storage: Durable local storage for the session cache
            fallback_events: Produces the events used when loading fails
            today: Returns the reference date for date filters
        """
        self.identity = identity
        self.event_repository = events
        self.storage = storage
        self.fallback_events = fallback_events
        self.today = today
        self._state = AppState()

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def user(self) -> Optional[User]:
        return self._state.user

    @property
    def events(self) -> List[Event]:
        return self._state.events

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def filters(self) -> Filters:
        return self._state.filters

    def _set(self, **changes) -> None:
        self._state = replace(self._state, **changes)

    def _persist_user(self, user: User) -> None:
        self.storage.set(USER_KEY, json.dumps(user.to_dict()))

    def _track(self, name: str, target_id: str, status: ActionStatus, error: Exception = None) -> None:
        actions = dict(self._state.actions)
        actions[(name, target_id)] = ActionRecord(name, target_id, status, error)
        self._set(actions=actions)

    def action_status(self, name: str, target_id: str) -> Optional[ActionRecord]:
        return self._state.actions.get((name, target_id))

    # Session

    def login(self, user: User) -> None:
        """
        Adopt a signed-in user

        The identity provider's current record replaces the supplied one
        when available. If that lookup or event loading fails, the supplied
        record is adopted instead.
        """
        try:
            fresh = self.identity.get_current_user()
            chosen = fresh or user
            self._persist_user(chosen)
            self._set(user=chosen, is_authenticated=True)
            self.load_events()
        except Exception:
            logger.exception("Error during login setup, falling back to supplied user")
            self._persist_user(user)
            self._set(user=user, is_authenticated=True)
        logger.info("Store session started for %s", self._state.user.id)

    def sign_in(self, email: str, password: str, wants_admin: bool = False) -> User:
        """
        Authenticate with the identity provider and start a session

        Raises:
            InvalidCredentialsException, AdminRoleMismatchException: The
                store stays anonymous and nothing is persisted
        """
        user = self.identity.login(email, password, wants_admin)
        self.login(user)
        return self._state.user

    def sign_up(self, profile: Dict, password: str) -> User:
        user = self.identity.register(profile, password)
        self.login(user)
        return self._state.user

    def logout(self) -> None:
        """Forget the local session; the provider session is left alone"""
        self.storage.remove(USER_KEY)
        self._set(user=None, is_authenticated=False, selected_event=None)

    def sign_out(self) -> None:
        """End both the provider session and the local session"""
        self.identity.logout()
        self.logout()

    def initialize_user(self) -> bool:
        """
        Resume a session from local storage

        Returns:
            True if a session was resumed
        """
        try:
            stored = self.storage.get(USER_KEY)
            if not stored:
                return False
            data = json.loads(stored)
            if not isinstance(data, dict):
                logger.error("Ignoring cached session: expected an object, got %s", type(data).__name__)
                return False
            user = User.from_dict(data)
            fresh = self.identity.get_current_user()
            self._set(user=fresh or user, is_authenticated=True)
            self.load_events()
            return True
        except (EventXException, ValueError, TypeError) as e:
            logger.error("Error initializing user: %s", e)
            return False

    # Events

    def load_events(self) -> List[Event]:
        """
        Replace the event list with a fresh snapshot

        Falls back to the built-in sample events on any failure.
        """
        try:
            events = self.event_repository.get_all_events()
            logger.info("Loaded %d events", len(events))
        except Exception as e:
            logger.warning("Error loading events (%s), falling back to sample events", e)
            events = self.fallback_events()
        self._set(events=events)
        return events

    def set_events(self, events: List[Event]) -> None:
        self._set(events=list(events))

    def select_event(self, event: Optional[Event]) -> None:
        self._set(selected_event=event)

    def get_event(self, event_id: str) -> Optional[Event]:
        return next((event for event in self._state.events if event.id == event_id), None)

    def register_for_event(self, event_id: str) -> None:
        """
        Register the signed-in user for an event

        The event side is written first, then the user side. Local state
        changes only after both succeed, and is then overwritten by a
        fresh load.

        Raises:
            AlreadyRegisteredException: Before any remote call, if the user
                already lists the event
            EventXException: Any failure of the two remote writes
        """
        user = self._state.user
        if user is None:
            logger.debug("register_for_event(%s) ignored: no user", event_id)
            return

        if user.is_registered_for(event_id):
            error = AlreadyRegisteredException(event_id, user.id)
            self._track("register", event_id, ActionStatus.FAILED, error)
            raise error

        self._track("register", event_id, ActionStatus.PENDING)
        registered_events = user.registered_events + [event_id]
        try:
            self.event_repository.register_for_event(event_id, user.id)
            self.identity.update_user_profile(user.id, {"registeredEvents": registered_events})
        except Exception as e:
            logger.error("Error registering %s for event %s: %s", user.id, event_id, e)
            self._track("register", event_id, ActionStatus.FAILED, e)
            raise

        updated_user = replace(user, registered_events=registered_events)
        updated_events = [
            replace(event, registered_users=event.registered_users + [user.id])
            if event.id == event_id and not event.is_registered(user.id) else event
            for event in self._state.events
        ]
        self._set(events=updated_events, user=updated_user)
        self._persist_user(updated_user)
        self._track("register", event_id, ActionStatus.COMMITTED)
        logger.info("User %s registered for event %s", user.id, event_id)

        self.load_events()

    def unregister_from_event(self, event_id: str) -> None:
        """
        Remove the signed-in user from an event

        Same write order and reconciliation as registration.
        """
        user = self._state.user
        if user is None:
            return

        self._track("unregister", event_id, ActionStatus.PENDING)
        registered_events = [eid for eid in user.registered_events if eid != event_id]
        try:
            self.event_repository.unregister_from_event(event_id, user.id)
            self.identity.update_user_profile(user.id, {"registeredEvents": registered_events})
        except Exception as e:
            self._track("unregister", event_id, ActionStatus.FAILED, e)
            raise

        updated_user = replace(user, registered_events=registered_events)
        updated_events = [
            replace(event, registered_users=[uid for uid in event.registered_users if uid != user.id])
            if event.id == event_id else event
            for event in self._state.events
        ]
        self._set(events=updated_events, user=updated_user)
        self._persist_user(updated_user)
        self._track("unregister", event_id, ActionStatus.COMMITTED)

        self.load_events()

    # Filters

    def set_filters(self, filter_college: str = None, filter_department: str = None,
                    filter_date: str = None) -> Filters:
        """
        Shallow-merge filter fields; omitted fields keep their value

        Raises:
            DataValidationException: If filter_date is not a known bucket
        """
        try:
            filters = self._state.filters.merged(filter_college, filter_department, filter_date)
        except ValueError:
            raise DataValidationException("filterDate", f"Unknown date filter '{filter_date}'")
        self._set(filters=filters)
        return filters

    def clear_filters(self) -> None:
        self._set(filters=Filters())

    def filtered_events(self, status: Optional[EventStatus] = None) -> List[Event]:
        """Events with the given status, narrowed by the current filters"""
        events = self._state.events
        if status is not None:
            events = [event for event in events if event.status is EventStatus(status)]
        return self._state.filters.apply(events, self.today())

    def events_for_tab(self, tab: Optional[str]) -> List[Event]:
        """
        Args:
            tab: 'upcoming', 'ongoing', 'registered', or anything else for all
        """
        if tab in (EventStatus.UPCOMING.value, EventStatus.ONGOING.value):
            return [event for event in self._state.events if event.status.value == tab]
        if tab == "registered":
            user = self._state.user
            if user is None:
                return []
            return [event for event in self._state.events if user.is_registered_for(event.id)]
        return list(self._state.events)

    def test_connection(self) -> bool:
        return self.event_repository.test_connection()
