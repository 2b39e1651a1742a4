import json
import unittest
from datetime import date
from unittest import mock

from eventx.exceptions import (
    AdminRoleMismatchException,
    AlreadyRegisteredException,
    CapacityFullException,
    DataValidationException,
    RemoteUnavailableException,
)
from eventx.models import EventStatus, User
from eventx.repositories import EVENTS, USERS
from eventx.sample_data import SAMPLE_EVENTS
from eventx.store import USER_KEY, ActionStatus, AppStore

from tests.factories import Harness, event_doc, user_doc


class SessionTests(unittest.TestCase):
    def setUp(self):
        self.harness = Harness(events={'e1': event_doc()})
        self.store = self.harness.store

    def test_sign_up_persists_and_loads_events(self):
        user = self.store.sign_up({'name': 'Ada', 'email': 'ada@campus.edu'}, 'secret123')
        self.assertTrue(self.store.is_authenticated)
        self.assertEqual(self.store.user.id, user.id)
        self.assertEqual(json.loads(self.harness.storage.get(USER_KEY))['id'], user.id)
        self.assertEqual([event.id for event in self.store.events], ['e1'])

    def test_login_prefers_provider_record(self):
        signed_up = self.harness.sign_up('ada@campus.edu')
        self.harness.identity.update_user_profile(signed_up.id, {'phone': '999'})

        self.store.login(signed_up)
        self.assertEqual(self.store.user.phone, '999')

    def test_login_falls_back_to_supplied_user(self):
        supplied = User.from_dict(user_doc('u1'))
        with mock.patch.object(self.harness.identity, 'get_current_user', side_effect=RuntimeError('down')):
            self.store.login(supplied)
        self.assertTrue(self.store.is_authenticated)
        self.assertEqual(self.store.user, supplied)
        self.assertEqual(json.loads(self.harness.storage.get(USER_KEY))['id'], 'u1')

    def test_role_mismatch_leaves_store_anonymous(self):
        self.harness.sign_up('student@campus.edu')
        self.harness.identity.logout()

        with self.assertRaises(AdminRoleMismatchException):
            self.store.sign_in('student@campus.edu', 'secret123', wants_admin=True)
        self.assertFalse(self.store.is_authenticated)
        self.assertIsNone(self.store.user)
        self.assertIsNone(self.harness.storage.get(USER_KEY))

    def test_logout_clears_local_session(self):
        self.store.sign_up({'name': 'Ada', 'email': 'ada@campus.edu'}, 'secret123')
        self.store.logout()
        self.assertFalse(self.store.is_authenticated)
        self.assertIsNone(self.store.user)
        self.assertIsNone(self.harness.storage.get(USER_KEY))

    def test_sign_out_also_ends_provider_session(self):
        self.store.sign_up({'name': 'Ada', 'email': 'ada@campus.edu'}, 'secret123')
        self.store.sign_out()
        self.assertIsNone(self.harness.identity.get_current_user())

    def test_initialize_user_resumes_from_storage(self):
        self.harness.storage.set(USER_KEY, json.dumps(user_doc('u1')))
        self.assertTrue(self.store.initialize_user())
        self.assertEqual(self.store.user.id, 'u1')
        self.assertEqual(len(self.store.events), 1)

    def test_initialize_user_without_or_with_bad_session(self):
        self.assertFalse(self.store.initialize_user())
        self.harness.storage.set(USER_KEY, '{broken')
        self.assertFalse(self.store.initialize_user())
        self.assertFalse(self.store.is_authenticated)

    def test_initialize_user_ignores_non_object_session(self):
        for cached in ('[]', 'null', '"u1"', '42'):
            with self.subTest(cached=cached):
                self.harness.storage.set(USER_KEY, cached)
                self.assertFalse(self.store.initialize_user())
                self.assertFalse(self.store.is_authenticated)
                self.assertIsNone(self.store.user)


class LoadEventsTests(unittest.TestCase):
    def test_falls_back_to_sample_events(self):
        harness = Harness()
        with mock.patch.object(harness.repository, 'get_all_events',
                               side_effect=RemoteUnavailableException('get_all_events', 'timeout')):
            events = harness.store.load_events()
        self.assertEqual(sorted(event.id for event in events),
                         sorted(data['id'] for data in SAMPLE_EVENTS))
        self.assertEqual(harness.store.events, events)


class RegistrationTests(unittest.TestCase):
    def setUp(self):
        self.harness = Harness(events={'e1': event_doc(maxCapacity=1)})
        self.store = self.harness.store
        self.user = self.store.sign_up({'name': 'Ada', 'email': 'ada@campus.edu'}, 'secret123')

    def test_register_updates_both_sides(self):
        self.store.register_for_event('e1')

        self.assertEqual(self.store.get_event('e1').registered_users, [self.user.id])
        self.assertEqual(self.store.user.registered_events, ['e1'])
        self.assertEqual(self.harness.document_store.get(USERS, self.user.id)['registeredEvents'], ['e1'])
        self.assertEqual(json.loads(self.harness.storage.get(USER_KEY))['registeredEvents'], ['e1'])
        self.assertIs(self.store.action_status('register', 'e1').status, ActionStatus.COMMITTED)

    def test_second_user_hits_capacity(self):
        self.store.register_for_event('e1')
        self.store.sign_out()
        self.store.sign_up({'name': 'Bob', 'email': 'bob@campus.edu'}, 'secret123')

        with self.assertRaises(CapacityFullException):
            self.store.register_for_event('e1')
        self.assertEqual(self.store.user.registered_events, [])
        self.assertEqual(self.store.get_event('e1').registered_users, [self.user.id])
        self.assertIs(self.store.action_status('register', 'e1').status, ActionStatus.FAILED)

    def test_already_registered_makes_no_remote_call(self):
        self.store.register_for_event('e1')
        before = self.store.state
        with mock.patch.object(self.harness.repository, 'register_for_event') as remote:
            with self.assertRaises(AlreadyRegisteredException):
                self.store.register_for_event('e1')
        remote.assert_not_called()
        self.assertEqual(self.store.user, before.user)
        self.assertEqual(self.store.events, before.events)

    def test_event_side_failure_skips_user_side(self):
        with mock.patch.object(self.harness.repository, 'register_for_event',
                               side_effect=RemoteUnavailableException('register', 'timeout')), \
                mock.patch.object(self.harness.identity, 'update_user_profile') as update:
            with self.assertRaises(RemoteUnavailableException):
                self.store.register_for_event('e1')
        update.assert_not_called()
        self.assertEqual(self.store.user.registered_events, [])

    def test_user_side_failure_leaves_event_written(self):
        with mock.patch.object(self.harness.identity, 'update_user_profile',
                               side_effect=RemoteUnavailableException('update_user_profile', 'timeout')):
            with self.assertRaises(RemoteUnavailableException):
                self.store.register_for_event('e1')

        self.assertEqual(self.harness.document_store.get(EVENTS, 'e1')['registeredUsers'], [self.user.id])
        self.assertEqual(self.harness.document_store.get(USERS, self.user.id)['registeredEvents'], [])
        self.assertEqual(self.store.user.registered_events, [])
        self.assertEqual(self.store.get_event('e1').registered_users, [])

        self.store.load_events()
        self.assertEqual(self.store.get_event('e1').registered_users, [self.user.id])

    def test_no_user_is_a_no_op(self):
        self.store.logout()
        self.store.register_for_event('e1')
        self.assertEqual(self.harness.document_store.get(EVENTS, 'e1')['registeredUsers'], [])

    def test_unregister(self):
        self.store.register_for_event('e1')
        self.store.unregister_from_event('e1')
        self.assertEqual(self.store.get_event('e1').registered_users, [])
        self.assertEqual(self.store.user.registered_events, [])
        self.assertEqual(self.harness.document_store.get(USERS, self.user.id)['registeredEvents'], [])
        self.assertIs(self.store.action_status('unregister', 'e1').status, ActionStatus.COMMITTED)


class FilterAndTabTests(unittest.TestCase):
    def setUp(self):
        self.harness = Harness(events={
            'a': event_doc(date='2024-03-13', college='MIT', status='upcoming'),
            'b': event_doc(date='2024-03-14', college='CMU', status='ongoing'),
            'c': event_doc(date='2024-05-01', college='MIT', status='upcoming'),
        })
        self.store = AppStore(self.harness.identity, self.harness.repository, self.harness.storage,
                              today=lambda: date(2024, 3, 13))
        self.store.load_events()

    def test_set_filters_merges(self):
        self.store.set_filters(filter_college='MIT')
        filters = self.store.set_filters(filter_date='This Month')
        self.assertEqual(filters.filter_college, 'MIT')
        self.assertEqual([e.id for e in self.store.filtered_events()], ['a'])
        self.assertEqual([e.id for e in self.store.filtered_events(EventStatus.ONGOING)], [])

        self.store.clear_filters()
        self.assertEqual(len(self.store.filtered_events()), 3)

    def test_unknown_date_bucket(self):
        with self.assertRaises(DataValidationException):
            self.store.set_filters(filter_date='Next Year')
        self.assertEqual(self.store.filters.filter_date, '')

    def test_tabs(self):
        self.assertEqual([e.id for e in self.store.events_for_tab('upcoming')], ['a', 'c'])
        self.assertEqual([e.id for e in self.store.events_for_tab('ongoing')], ['b'])
        self.assertEqual(self.store.events_for_tab('registered'), [])
        self.assertEqual(len(self.store.events_for_tab(None)), 3)

        self.store.sign_up({'name': 'Ada', 'email': 'ada@campus.edu'}, 'secret123')
        self.store.register_for_event('b')
        self.assertEqual([e.id for e in self.store.events_for_tab('registered')], ['b'])


if __name__ == '__main__':
    unittest.main()
