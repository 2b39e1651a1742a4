import os
import shutil
import tempfile
import unittest
from unittest import mock

import redis

from eventx.exceptions import DataAccessException
from eventx.storage import InMemoryStorage, JSONFileStorage, RedisStorage, create_storage


class JSONFileStorageTests(unittest.TestCase):
    def setUp(self):
        self.directory = tempfile.mkdtemp()
        self.path = os.path.join(self.directory, 'nested', 'session.json')
        self.storage = JSONFileStorage(self.path)

    def tearDown(self):
        shutil.rmtree(self.directory, ignore_errors=True)

    def test_missing_file_reads_as_empty(self):
        self.assertIsNone(self.storage.get('user'))

    def test_set_get_remove(self):
        self.storage.set('user', '{"id": "u1"}')
        self.assertEqual(JSONFileStorage(self.path).get('user'), '{"id": "u1"}')
        self.storage.remove('user')
        self.assertIsNone(self.storage.get('user'))
        self.storage.remove('user')

    def test_corrupt_file_raises_data_access(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, 'w', encoding='utf-8') as f:
            f.write('{not json')
        with self.assertRaises(DataAccessException):
            self.storage.get('user')


class RedisStorageTests(unittest.TestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.storage = RedisStorage(self.client, prefix='device1:')

    def test_keys_are_namespaced(self):
        self.client.get.return_value = 'value'
        self.assertEqual(self.storage.get('user'), 'value')
        self.client.get.assert_called_once_with('device1:user')

        self.storage.set('user', 'v2')
        self.client.set.assert_called_once_with('device1:user', 'v2')

        self.storage.remove('user')
        self.client.delete.assert_called_once_with('device1:user')

    def test_redis_errors_become_data_access(self):
        self.client.get.side_effect = redis.ConnectionError('refused')
        with self.assertRaises(DataAccessException) as ctx:
            self.storage.get('user')
        self.assertEqual(ctx.exception.key, 'user')


class CreateStorageTests(unittest.TestCase):
    def test_memory(self):
        storage = create_storage('memory', initial_data={'user': 'x'})
        self.assertIsInstance(storage, InMemoryStorage)
        self.assertEqual(storage.get('user'), 'x')

    def test_json_requires_path(self):
        with self.assertRaises(ValueError):
            create_storage('json')

    def test_redis_from_url(self):
        with mock.patch('eventx.storage.redis.Redis.from_url') as from_url:
            storage = create_storage('redis', url='redis://cache:6379/1')
        from_url.assert_called_once_with('redis://cache:6379/1', decode_responses=True)
        self.assertIsInstance(storage, RedisStorage)

    def test_unknown(self):
        with self.assertRaises(ValueError):
            create_storage('sqlite')


if __name__ == '__main__':
    unittest.main()
