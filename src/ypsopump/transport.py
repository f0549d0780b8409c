"""
Transport interface for the pump link.

This module provides the abstract base class the command engine drives.
Implementations can wrap any BLE stack; each logical channel is an opaque
string (a characteristic UUID on a real pump).
"""

from abc import ABC, abstractmethod
from typing import Callable

NotificationCallback = Callable[[bytes], None]


class PumpTransport(ABC):
    """Interface for a single-outstanding-operation byte transport."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the link is currently up."""
        ...

    @abstractmethod
    async def write(self, channel: str, data: bytes) -> bool:
        """Write one frame to a channel and return the acknowledgement."""
        ...

    @abstractmethod
    async def read(self, channel: str) -> bytes:
        """Read one frame (or one unframed value) from a channel."""
        ...

    @abstractmethod
    async def subscribe(self, channel: str, callback: NotificationCallback) -> None:
        """Register a callback for notifications on a channel."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the link."""
        ...
