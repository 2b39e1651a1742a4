"""
Durable Local Storage for EventX

Key/value string storage used to cache the signed-in user between runs so a
session can be resumed. Three backends: a JSON file, Redis, and memory.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, Optional

import redis

from .exceptions import DataAccessException

logger = logging.getLogger(__name__)


class LocalStorage(ABC):
    """
    Abstract base class for durable local storage

    Values are strings; callers serialize structured data themselves.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Returns:
            The stored string, or None if the key is absent
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a string under key, replacing any previous value"""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove key; removing an absent key is not an error"""


class JSONFileStorage(LocalStorage):
    """
    JSON file-backed storage

    The whole file is one JSON object mapping keys to strings. It is
    rewritten on every change.
    """

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Path to the JSON file
        """
        self.file_path = file_path

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            raise DataAccessException("read", f"Invalid JSON in {self.file_path}: {str(e)}")
        except OSError as e:
            raise DataAccessException("read", f"Cannot read {self.file_path}: {str(e)}")

    def _save(self, data: Dict[str, str]) -> None:
        try:
            directory = os.path.dirname(self.file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise DataAccessException("write", f"Cannot write {self.file_path}: {str(e)}")

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)


class RedisStorage(LocalStorage):
    """
    Redis-backed storage

    Keys are namespaced with a prefix so several devices can share one
    Redis instance.
    """

    def __init__(self, client: redis.Redis, prefix: str = "eventx:"):
        """
        Args:
            client: Redis client created with decode_responses=True
            prefix: Namespace prepended to every key
        """
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "eventx:") -> 'RedisStorage':
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(self._key(key))
        except redis.RedisError as e:
            raise DataAccessException("read", str(e), key)

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(self._key(key), value)
        except redis.RedisError as e:
            raise DataAccessException("write", str(e), key)

    def remove(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            raise DataAccessException("delete", str(e), key)


class InMemoryStorage(LocalStorage):
    """In-memory storage for tests"""

    def __init__(self, initial_data: Optional[Dict[str, str]] = None):
        self._data = dict(initial_data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


def create_storage(storage_type: str, **kwargs) -> LocalStorage:
    """
    Create a local storage backend based on type

    Args:
        storage_type: 'json', 'redis' or 'memory'
        **kwargs: file_path for json, url for redis

    Raises:
        ValueError: If storage type is not supported
    """
    storage_type = storage_type.lower()
    if storage_type == 'json':
        if 'file_path' not in kwargs:
            raise ValueError("file_path is required for JSON storage")
        return JSONFileStorage(kwargs['file_path'])

    elif storage_type == 'redis':
        if 'url' not in kwargs:
            raise ValueError("url is required for Redis storage")
        return RedisStorage.from_url(kwargs['url'])

    elif storage_type == 'memory':
        return InMemoryStorage(kwargs.get('initial_data'))

    else:
        raise ValueError(f"Unsupported storage type: {storage_type}")
