"""Built-in events shown when the document store cannot be reached."""

from typing import List

from .models import Event

SAMPLE_EVENTS = [
    {
        'id': '1',
        'title': 'Tech Conference 2024',
        'description': 'Annual technology conference featuring the latest innovations in AI, '
                       'blockchain, and web development.',
        'date': '2024-03-15',
        'time': '09:00 AM',
        'location': 'Main Auditorium',
        'college': 'MIT',
        'department': 'Computer Science',
        'organizer': 'Tech Club MIT',
        'status': 'upcoming',
        'maxCapacity': 200,
        'registeredUsers': ['user1', 'user2'],
        'attendees': [],
    },
    {
        'id': '2',
        'title': 'Cultural Fest 2024',
        'description': 'Celebrate diversity with music, dance, and art from around the world.',
        'date': '2024-03-20',
        'time': '06:00 PM',
        'location': 'Campus Ground',
        'college': 'Stanford',
        'department': 'Arts',
        'organizer': 'Cultural Committee',
        'status': 'upcoming',
        'maxCapacity': 500,
        'registeredUsers': ['user3'],
        'attendees': [],
    },
    {
        'id': '3',
        'title': 'Startup Pitch Competition',
        'description': 'Present your innovative startup ideas to industry experts and investors.',
        'date': '2024-03-10',
        'time': '02:00 PM',
        'location': 'Business Hall',
        'college': 'Harvard',
        'department': 'Business',
        'organizer': 'Entrepreneurship Club',
        'status': 'ongoing',
        'maxCapacity': 100,
        'registeredUsers': ['user1'],
        'attendees': [],
    },
    {
        'id': '4',
        'title': 'Science Fair 2024',
        'description': 'Showcase groundbreaking research and scientific discoveries.',
        'date': '2024-02-28',
        'time': '10:00 AM',
        'location': 'Science Building',
        'college': 'Caltech',
        'department': 'Physics',
        'organizer': 'Science Society',
        'status': 'completed',
        'maxCapacity': 150,
        'registeredUsers': ['user2', 'user3'],
        'attendees': [],
    },
    {
        'id': '5',
        'title': 'Music Festival 2024',
        'description': 'An electrifying music festival featuring local bands and renowned artists.',
        'date': '2024-03-25',
        'time': '07:00 PM',
        'location': 'Outdoor Amphitheater',
        'college': 'Berkeley',
        'department': 'Music',
        'organizer': 'Music Society',
        'status': 'upcoming',
        'maxCapacity': 1000,
        'registeredUsers': ['user1', 'user3'],
        'attendees': [],
    },
    {
        'id': '6',
        'title': 'Hackathon 2024',
        'description': '48-hour coding marathon where teams build innovative solutions to '
                       'real-world problems.',
        'date': '2024-03-30',
        'time': '09:00 AM',
        'location': 'Innovation Lab',
        'college': 'CMU',
        'department': 'Computer Science',
        'organizer': 'Coding Club',
        'status': 'upcoming',
        'maxCapacity': 300,
        'registeredUsers': ['user2'],
        'attendees': [],
    },
]


def sample_events() -> List[Event]:
    """Fresh copies of the sample events, sorted like live data"""
    events = [Event.from_dict(data) for data in SAMPLE_EVENTS]
    events.sort(key=Event.sort_key)
    return events
