"""
Data Models for EventX

This module contains the data model classes that represent the core entities
of the EventX system. Documents in the remote store keep camelCase field
names; the dataclasses expose snake_case attributes and convert with
from_dict/to_dict.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional


TIME_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M", "%H:%M:%S")


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string"""
    return datetime.now(timezone.utc).isoformat()


def parse_event_date(value: str) -> Optional[date]:
    """
    Parse an event date ('YYYY-MM-DD' or a full ISO timestamp)

    Returns:
        date instance, or None when the value cannot be parsed
    """
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        return None


def parse_event_time(value: str) -> Optional[timedelta]:
    """
    Parse a display time such as '09:00 AM' or '14:30' into an offset from midnight
    """
    if not value:
        return None
    text = value.strip().upper()
    for fmt in TIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return timedelta(hours=parsed.hour, minutes=parsed.minute, seconds=parsed.second)
    return None


class EventStatus(Enum):
    """Enumeration for event lifecycle status"""
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"

    def next(self) -> 'EventStatus':
        """
        Next status in the admin toggle cycle

        The cycle wraps around; status changes are not otherwise restricted.
        """
        order = list(EventStatus)
        return order[(order.index(self) + 1) % len(order)]


class DateFilter(Enum):
    """Date bucket used by the explore filters"""
    ALL = ""
    TODAY = "Today"
    THIS_WEEK = "This Week"
    THIS_MONTH = "This Month"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'DateFilter':
        if not value or value == "All":
            return cls.ALL
        return cls(value)

    def matches(self, event_date: Optional[date], today: date) -> bool:
        """
        Check whether an event date falls into this bucket

        Args:
            event_date: Parsed event date (None never matches a bucket)
            today: Reference date
        """
        if self is DateFilter.ALL:
            return True
        if event_date is None:
            return False
        if self is DateFilter.TODAY:
            return event_date == today
        if self is DateFilter.THIS_WEEK:
            return event_date.isocalendar()[:2] == today.isocalendar()[:2]
        return (event_date.year, event_date.month) == (today.year, today.month)


@dataclass
class User:
    """
    Data model for an authenticated user

    registered_events mirrors Event.registered_users and is kept in sync
    by every mutating store action.
    """
    id: str
    name: str
    email: str
    phone: str = ""
    college: str = ""
    department: str = ""
    is_admin: bool = False
    registered_events: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict, user_id: str = None) -> 'User':
        """
        Create User instance from a stored document

        Args:
            data: Document fields (camelCase)
            user_id: Document id, used when the body has no 'id'
        """
        return cls(
            id=data.get('id') or user_id,
            name=data.get('name', ''),
            email=data.get('email', ''),
            phone=data.get('phone', ''),
            college=data.get('college', ''),
            department=data.get('department', ''),
            is_admin=bool(data.get('isAdmin', False)),
            registered_events=list(data.get('registeredEvents') or []),
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
        )

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'college': self.college,
            'department': self.department,
            'isAdmin': self.is_admin,
            'registeredEvents': list(self.registered_events),
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    def is_registered_for(self, event_id: str) -> bool:
        return event_id in self.registered_events


@dataclass
class Event:
    """
    Data model for a campus event

    registered_users never exceeds max_capacity when writes go through
    EventRepository.register_for_event.
    """
    id: str
    title: str
    description: str
    date: str
    time: str
    location: str
    college: str
    department: str
    organizer: str
    max_capacity: int
    registered_users: List[str] = field(default_factory=list)
    attendees: List[str] = field(default_factory=list)
    status: EventStatus = EventStatus.UPCOMING
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict, event_id: str = None) -> 'Event':
        """
        Create Event instance from a stored document

        Args:
            data: Document fields (camelCase)
            event_id: Document id, used when the body has no 'id'
        """
        return cls(
            id=data.get('id') or event_id,
            title=data.get('title', ''),
            description=data.get('description', ''),
            date=data.get('date', ''),
            time=data.get('time', ''),
            location=data.get('location', ''),
            college=data.get('college', ''),
            department=data.get('department', ''),
            organizer=data.get('organizer', ''),
            max_capacity=int(data.get('maxCapacity') or 0),
            registered_users=list(data.get('registeredUsers') or []),
            attendees=list(data.get('attendees') or []),
            status=EventStatus(data.get('status') or EventStatus.UPCOMING.value),
            image_url=data.get('imageUrl'),
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
            created_by=data.get('createdBy'),
        )

    def to_dict(self) -> Dict:
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'date': self.date,
            'time': self.time,
            'location': self.location,
            'college': self.college,
            'department': self.department,
            'organizer': self.organizer,
            'maxCapacity': self.max_capacity,
            'registeredUsers': list(self.registered_users),
            'attendees': list(self.attendees),
            'status': self.status.value,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'createdBy': self.created_by,
        }
        if self.image_url:
            data['imageUrl'] = self.image_url
        return data

    @property
    def is_full(self) -> bool:
        return len(self.registered_users) >= self.max_capacity

    @property
    def spots_left(self) -> int:
        return max(0, self.max_capacity - len(self.registered_users))

    def is_registered(self, user_id: str) -> bool:
        return user_id in self.registered_users

    @property
    def event_date(self) -> Optional[date]:
        return parse_event_date(self.date)

    @property
    def starts_at(self) -> Optional[datetime]:
        """Composite start of the event, None if date or time is unparseable"""
        day = self.event_date
        offset = parse_event_time(self.time)
        if day is None or offset is None:
            return None
        return datetime.combine(day, datetime.min.time()) + offset

    def sort_key(self) -> tuple:
        """
        Total ordering key: date, then time, then id

        An unparseable date sorts after every dated event; an unparseable
        time sorts last within its date.
        """
        day = self.event_date
        offset = parse_event_time(self.time)
        return (
            day is None, day or date.max, "" if day else (self.date or ""),
            offset is None, offset if offset is not None else timedelta.max,
            "" if offset is not None else (self.time or ""),
            self.id or "",
        )


@dataclass
class AttendanceRecord:
    """
    Data model for attendance tracking

    One record is written for every successful scan.
    """
    event_id: str
    user_id: str
    timestamp: str

    @classmethod
    def create_new(cls, event_id: str, user_id: str) -> 'AttendanceRecord':
        """
        Create new attendance record stamped with the current time

        Args:
            event_id: ID of the event being attended
            user_id: ID of the user being scanned
        """
        return cls(event_id=event_id, user_id=user_id, timestamp=utc_now_iso())

    @classmethod
    def from_dict(cls, data: Dict) -> 'AttendanceRecord':
        return cls(
            event_id=data['eventId'],
            user_id=data['userId'],
            timestamp=data.get('timestamp', ''),
        )

    def to_dict(self) -> Dict:
        return {
            'eventId': self.event_id,
            'userId': self.user_id,
            'timestamp': self.timestamp,
        }


@dataclass
class RegisteredStudent:
    """Profile projection shown in the admin registered-students list"""
    id: str
    name: str
    email: str
    college: str
    department: str
    phone: str
    registered_at: Optional[str]

    @classmethod
    def from_user_document(cls, user_id: str, data: Dict) -> 'RegisteredStudent':
        return cls(
            id=data.get('id') or user_id,
            name=data.get('name', ''),
            email=data.get('email', ''),
            college=data.get('college', ''),
            department=data.get('department', ''),
            phone=data.get('phone', ''),
            registered_at=data.get('updatedAt') or data.get('createdAt'),
        )

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'college': self.college,
            'department': self.department,
            'phone': self.phone,
            'registeredAt': self.registered_at,
        }


@dataclass
class Filters:
    """Explore-screen filters; empty strings mean 'All'"""
    filter_college: str = ""
    filter_department: str = ""
    filter_date: str = ""

    def merged(self, filter_college: str = None, filter_department: str = None,
               filter_date: str = None) -> 'Filters':
        """
        Shallow merge: fields passed as None keep their current value
        """
        return Filters(
            filter_college=self.filter_college if filter_college is None else filter_college,
            filter_department=self.filter_department if filter_department is None else filter_department,
            filter_date=self.filter_date if filter_date is None else DateFilter.parse(filter_date).value,
        )

    def apply(self, events: List[Event], today: date) -> List[Event]:
        bucket = DateFilter.parse(self.filter_date)
        result = []
        for event in events:
            if self.filter_college and event.college != self.filter_college:
                continue
            if self.filter_department and event.department != self.filter_department:
                continue
            if not bucket.matches(event.event_date, today):
                continue
            result.append(event)
        return result

    def to_dict(self) -> Dict:
        return {
            'filterCollege': self.filter_college,
            'filterDepartment': self.filter_department,
            'filterDate': self.filter_date,
        }
