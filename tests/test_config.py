import unittest
from datetime import timedelta

from eventx.config import DEFAULT_CONFIG, load_config


class LoadConfigTests(unittest.TestCase):
    def test_defaults(self):
        config = load_config(environ={})
        self.assertEqual(config, DEFAULT_CONFIG)
        self.assertIsNot(config, DEFAULT_CONFIG)

    def test_environment_values_are_typed(self):
        config = load_config(environ={
            'EVENTX_DEBUG': 'true',
            'EVENTX_QR_VALIDITY_HOURS': '12',
            'EVENTX_PERMANENT_SESSION_LIFETIME': '3600',
            'EVENTX_MONGO_URI': 'mongodb://db:27017',
            'UNRELATED': 'x',
        })
        self.assertIs(config['DEBUG'], True)
        self.assertEqual(config['QR_VALIDITY_HOURS'], 12)
        self.assertEqual(config['PERMANENT_SESSION_LIFETIME'], 3600)
        self.assertEqual(config['MONGO_URI'], 'mongodb://db:27017')
        self.assertNotIn('UNRELATED', config)

    def test_overrides_win(self):
        config = load_config({'DEBUG': False, 'PERMANENT_SESSION_LIFETIME': timedelta(hours=2)},
                             environ={'EVENTX_DEBUG': '1'})
        self.assertIs(config['DEBUG'], False)
        self.assertEqual(config['PERMANENT_SESSION_LIFETIME'], timedelta(hours=2))


if __name__ == '__main__':
    unittest.main()
