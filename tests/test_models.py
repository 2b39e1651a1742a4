import unittest
from datetime import date

from eventx.models import DateFilter, Event, EventStatus, Filters, User, parse_event_time

from tests.factories import event_doc, user_doc


class EventModelTests(unittest.TestCase):
    def test_round_trip_keeps_camel_case_document_fields(self):
        event = Event.from_dict(event_doc(imageUrl='https://img'), 'e1')
        data = event.to_dict()

        self.assertEqual(data['id'], 'e1')
        self.assertEqual(data['maxCapacity'], 10)
        self.assertEqual(data['status'], 'upcoming')
        self.assertEqual(data['imageUrl'], 'https://img')

    def test_capacity_helpers(self):
        event = Event.from_dict(event_doc(maxCapacity=2, registeredUsers=['a']), 'e1')
        self.assertFalse(event.is_full)
        self.assertEqual(event.spots_left, 1)
        event.registered_users.append('b')
        self.assertTrue(event.is_full)
        self.assertEqual(event.spots_left, 0)

    def test_sort_key_orders_by_date_then_time_then_id(self):
        events = [
            Event.from_dict(event_doc(date='2024-03-15', time='02:00 PM'), 'b'),
            Event.from_dict(event_doc(date='2024-03-15', time='09:00 AM'), 'c'),
            Event.from_dict(event_doc(date='2024-03-10', time='11:00 PM'), 'd'),
            Event.from_dict(event_doc(date='2024-03-15', time='14:00'), 'a'),
            Event.from_dict(event_doc(date='soon', time='??'), 'z'),
        ]
        ordered = [event.id for event in sorted(events, key=Event.sort_key)]
        self.assertEqual(ordered, ['d', 'c', 'a', 'b', 'z'])

    def test_unreadable_time_keeps_date_order(self):
        events = [
            Event.from_dict(event_doc(date='2030-01-01', time='09:00 AM'), 'later'),
            Event.from_dict(event_doc(date='2024-01-01', time='TBA'), 'tba'),
            Event.from_dict(event_doc(date='2024-01-01', time='11:00 PM'), 'night'),
            Event.from_dict(event_doc(date='TBD', time='10:00 AM'), 'undated'),
        ]
        ordered = [event.id for event in sorted(events, key=Event.sort_key)]
        self.assertEqual(ordered, ['night', 'tba', 'later', 'undated'])

    def test_parse_event_time_accepts_twelve_and_twenty_four_hour(self):
        self.assertEqual(parse_event_time('09:05 PM').seconds, 21 * 3600 + 5 * 60)
        self.assertEqual(parse_event_time('21:05').seconds, 21 * 3600 + 5 * 60)
        self.assertIsNone(parse_event_time('noon-ish'))

    def test_status_cycle_wraps(self):
        self.assertIs(EventStatus.UPCOMING.next(), EventStatus.ONGOING)
        self.assertIs(EventStatus.ONGOING.next(), EventStatus.COMPLETED)
        self.assertIs(EventStatus.COMPLETED.next(), EventStatus.UPCOMING)


class UserModelTests(unittest.TestCase):
    def test_from_dict_uses_document_id_when_body_has_none(self):
        data = user_doc('u1')
        del data['id']
        user = User.from_dict(data, 'u1')
        self.assertEqual(user.id, 'u1')
        self.assertFalse(user.is_admin)
        self.assertEqual(user.to_dict()['registeredEvents'], [])


class FilterTests(unittest.TestCase):
    def setUp(self):
        self.today = date(2024, 3, 13)  # a Wednesday
        self.events = [
            Event.from_dict(event_doc(date='2024-03-13', college='MIT'), 'today'),
            Event.from_dict(event_doc(date='2024-03-17', department='Arts'), 'sunday'),
            Event.from_dict(event_doc(date='2024-03-28'), 'later'),
            Event.from_dict(event_doc(date='2024-04-02'), 'april'),
        ]

    def test_merge_keeps_fields_not_passed(self):
        filters = Filters().merged(filter_college='X').merged(filter_department='Y')
        self.assertEqual(filters.filter_college, 'X')
        self.assertEqual(filters.filter_department, 'Y')
        self.assertEqual(filters.filter_date, '')

    def test_all_is_the_empty_date_bucket(self):
        self.assertEqual(Filters().merged(filter_date='All').filter_date, '')
        self.assertIs(DateFilter.parse(None), DateFilter.ALL)

    def test_date_buckets(self):
        def ids(bucket):
            return [e.id for e in Filters(filter_date=bucket).apply(self.events, self.today)]

        self.assertEqual(ids('Today'), ['today'])
        self.assertEqual(ids('This Week'), ['today', 'sunday'])
        self.assertEqual(ids('This Month'), ['today', 'sunday', 'later'])
        self.assertEqual(len(ids('')), 4)

    def test_college_and_department(self):
        self.assertEqual([e.id for e in Filters(filter_college='MIT').apply(self.events, self.today)],
                         ['today'])
        self.assertEqual([e.id for e in Filters(filter_department='Arts').apply(self.events, self.today)],
                         ['sunday'])


if __name__ == '__main__':
    unittest.main()
