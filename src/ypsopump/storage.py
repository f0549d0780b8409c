"""Shared-key storage interface with a validity window."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from .keys import validate_shared_key
from .types import KEY_VALIDITY, KeyExpiredError, KeyNotFoundError


@dataclass
class StoredKey:
    """A shared key with its issue and expiry times."""
    key: bytes
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or datetime.now())

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        """Time left before expiry (zero once expired)."""
        return max(self.expires_at - (now or datetime.now()), timedelta(0))


class SharedKeyStorage(ABC):
    """Interface for storing pump shared keys by pump serial."""

    @abstractmethod
    async def store(self, serial: str, key: bytes, validity: timedelta = KEY_VALIDITY) -> StoredKey:
        """Store a shared key for a pump."""
        ...

    @abstractmethod
    async def retrieve(self, serial: str) -> bytes:
        """Retrieve a shared key, failing if it is missing or expired."""
        ...

    @abstractmethod
    async def has_key(self, serial: str) -> bool:
        """Check if an unexpired key exists for a pump."""
        ...

    @abstractmethod
    async def delete(self, serial: str) -> None:
        """Delete the key for a pump."""
        ...


class InMemoryKeyStorage(SharedKeyStorage):
    """
    In-memory implementation of SharedKeyStorage (for testing).

    WARNING: Keys are held unencrypted in process memory and are lost
    when the process exits.
    """

    def __init__(self) -> None:
        self._keys: dict[str, StoredKey] = {}

    async def store(self, serial: str, key: bytes, validity: timedelta = KEY_VALIDITY) -> StoredKey:
        now = datetime.now()
        entry = StoredKey(key=validate_shared_key(key), created_at=now, expires_at=now + validity)
        self._keys[serial] = entry
        return entry

    async def retrieve(self, serial: str) -> bytes:
        entry = self._keys.get(serial)
        if entry is None:
            raise KeyNotFoundError(serial)
        if entry.is_expired():
            raise KeyExpiredError(serial)
        return bytes(entry.key)

    async def has_key(self, serial: str) -> bool:
        entry = self._keys.get(serial)
        return entry is not None and not entry.is_expired()

    async def delete(self, serial: str) -> None:
        self._keys.pop(serial, None)

    def get_entry(self, serial: str) -> Optional[StoredKey]:
        """Return the stored entry (expired or not) for inspection."""
        return self._keys.get(serial)
