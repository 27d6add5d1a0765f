# ==============================================================================
# Cache Abstract Base Class
# ==============================================================================
"""
Abstract interface for the key-value backend behind the analytics stores.

Each logical store (events, sessions, consent, ...) is persisted as one JSON
document under one key. Backends only move documents in and out; the
bounded-list semantics live in infrastructure/stores.py.

Implementations: Valkey/Redis, local JSON files.
"""

from abc import ABC, abstractmethod
from typing import Any


class CacheError(Exception):
    """A backend could not read or write a key."""


class CorruptValueError(CacheError):
    """A stored payload exists but cannot be decoded."""


class Cache(ABC):
    """
    Generic key-value interface for JSON documents.

    Values are any JSON-serializable structure (lists, dicts, strings).
    Implementations handle serialization internally and raise CacheError
    for backend failures. A payload that exists but is not valid JSON is
    reported as CorruptValueError so callers can tell it apart from a
    missing key.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """
        Get a stored value.

        Args:
            key: Key to read

        Returns:
            Decoded value, or None if the key does not exist

        Raises:
            CorruptValueError: If the stored payload is not valid JSON
            CacheError: If the backend cannot be read
        """
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Store a value, replacing any previous one.

        Args:
            key: Key to write
            value: JSON-serializable value

        Raises:
            CacheError: If the value cannot be serialized or written
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Args:
            key: Key to delete

        Returns:
            True if key was deleted, False if not found
        """
        ...

    @abstractmethod
    def ping(self) -> bool:
        """Check if the backend is reachable."""
        ...

    def close(self) -> None:
        """Release backend resources."""
