"""
Configuration for EventX

Settings come from three layers: built-in defaults, EVENTX_* environment
variables, then an explicit dictionary passed by the caller.
"""

import os
from datetime import timedelta
from typing import Dict, Optional

DEFAULT_CONFIG = {
    'SECRET_KEY': 'eventx-dev',
    'DEBUG': False,
    'PERMANENT_SESSION_LIFETIME': timedelta(days=1),
    'DOCUMENT_STORE': 'memory',
    'MONGO_URI': 'mongodb://localhost:27017',
    'MONGO_DB': 'eventx',
    'STORAGE': 'memory',
    'SESSION_FILE': os.path.join(os.path.expanduser('~'), '.eventx', 'session.json'),
    'REDIS_URL': 'redis://localhost:6379/0',
    'LOG_LEVEL': 'INFO',
    'QR_VALIDITY_HOURS': 24,
}

ENV_PREFIX = 'EVENTX_'

_BOOLEAN_KEYS = {'DEBUG'}
_INTEGER_KEYS = {'QR_VALIDITY_HOURS', 'PERMANENT_SESSION_LIFETIME'}


def _from_environment(environ) -> Dict:
    config = {}
    for key in DEFAULT_CONFIG:
        value = environ.get(f"{ENV_PREFIX}{key}")
        if value is None:
            continue
        if key in _BOOLEAN_KEYS:
            config[key] = value.strip().lower() in ('1', 'true', 'yes', 'on')
        elif key in _INTEGER_KEYS:
            config[key] = int(value)
        else:
            config[key] = value
    return config


def load_config(overrides: Optional[Dict] = None, environ=None) -> Dict:
    """
    Build the effective configuration

    Args:
        overrides: Values that take precedence over everything else
        environ: Environment mapping, defaults to os.environ

    Returns:
        Configuration dictionary
    """
    config = dict(DEFAULT_CONFIG)
    config.update(_from_environment(os.environ if environ is None else environ))
    if overrides:
        config.update(overrides)
    return config
