"""Session cipher: XChaCha20-Poly1305 with reboot and ordering counters.

Plaintext layout before encryption::

    payload || reboot_counter (4) || write_counter (8)

Wire layout::

    ciphertext || tag (16) || nonce (24)
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from .keys import validate_shared_key
from .log import get_logger
from .types import (
    COUNTER_DATA_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    ConfigurationError,
    FormatError,
    OrderingError,
    SessionNotReadyError,
)
from .xchacha import xchacha20_poly1305_decrypt, xchacha20_poly1305_encrypt

logger = get_logger(__name__)

_MAX_WRITE_COUNTER = 2**64 - 1


@dataclass(frozen=True)
class SessionConfig:
    """Counter conventions for the embedded counter block.

    Attributes:
        counter_byteorder: "big" or "little", applied to both counter fields.
        increment_before_use: Increment the write counter before embedding it.
    """

    counter_byteorder: str = "big"
    increment_before_use: bool = False

    def __post_init__(self) -> None:
        if self.counter_byteorder not in ("big", "little"):
            raise ConfigurationError(
                f"counter_byteorder must be 'big' or 'little', got {self.counter_byteorder!r}"
            )

    @classmethod
    def little_endian(cls) -> "SessionConfig":
        """Little-endian counters, incremented before use."""
        return cls(counter_byteorder="little", increment_before_use=True)


def pack_counters(reboot_counter: int, counter: int, byteorder: str = "big") -> bytes:
    """Serialize the 12-byte counter block."""
    return reboot_counter.to_bytes(4, byteorder, signed=True) + counter.to_bytes(8, byteorder)


def unpack_counters(data: bytes, byteorder: str = "big") -> Tuple[int, int]:
    """Parse a 12-byte counter block into (reboot_counter, counter)."""
    if len(data) != COUNTER_DATA_SIZE:
        raise FormatError(f"Counter block must be {COUNTER_DATA_SIZE} bytes, got {len(data)}")
    reboot_counter = int.from_bytes(data[:4], byteorder, signed=True)
    counter = int.from_bytes(data[4:], byteorder)
    return reboot_counter, counter


class PumpSession:
    """
    Encryption state for one pump connection.

    A session is ``Uninitialized`` until a shared key is set and
    ``Ready`` afterwards. State is only committed once a message has
    been fully processed, so a failed decrypt leaves counters untouched.
    """

    def __init__(
        self,
        shared_key: Optional[bytes] = None,
        config: Optional[SessionConfig] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.shared_key: Optional[bytes] = None
        self.write_counter = 0
        self.read_counter = 0
        self.reboot_counter = 0
        if shared_key is not None:
            self.set_shared_key(shared_key)

    @property
    def is_ready(self) -> bool:
        return self.shared_key is not None

    def set_shared_key(self, shared_key: bytes) -> None:
        """Attach a shared key, moving the session to ``Ready``."""
        self.shared_key = validate_shared_key(shared_key)

    def _require_key(self) -> bytes:
        if self.shared_key is None:
            raise SessionNotReadyError("No shared key - session is uninitialized")
        return self.shared_key

    def encrypt(self, payload: bytes) -> bytes:
        """
        Encrypt a command payload.

        Args:
            payload: Plaintext command bytes (checksum already appended if any)

        Returns:
            ciphertext || tag || nonce
        """
        key = self._require_key()

        counter = self.write_counter + 1 if self.config.increment_before_use else self.write_counter
        if counter > _MAX_WRITE_COUNTER:
            raise OrderingError(counter, self.write_counter)

        plaintext = payload + pack_counters(self.reboot_counter, counter, self.config.counter_byteorder)
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = xchacha20_poly1305_encrypt(key, nonce, plaintext)

        self.write_counter = counter if self.config.increment_before_use else counter + 1
        return ciphertext + nonce

    def decrypt(self, data: bytes) -> bytes:
        """
        Decrypt a device response and enforce counter ordering.

        Raises:
            SessionNotReadyError: If no key is attached
            FormatError: If the message or its counter block is malformed
            AuthenticationError: If the tag does not verify
            OrderingError: If the device counter did not increase
        """
        key = self._require_key()

        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise FormatError(
                f"Encrypted payload too short: {len(data)} < {NONCE_SIZE + TAG_SIZE}"
            )

        nonce = data[-NONCE_SIZE:]
        plaintext = xchacha20_poly1305_decrypt(key, nonce, data[:-NONCE_SIZE])

        if len(plaintext) < COUNTER_DATA_SIZE:
            raise FormatError(
                f"Decrypted payload too short for counters: {len(plaintext)} < {COUNTER_DATA_SIZE}"
            )

        peer_reboot, peer_counter = unpack_counters(
            plaintext[-COUNTER_DATA_SIZE:], self.config.counter_byteorder
        )
        if peer_reboot < 0:
            raise FormatError(f"Invalid reboot counter: {peer_reboot}")

        reboot_counter = self.reboot_counter
        write_counter = self.write_counter
        read_counter = self.read_counter

        if peer_reboot > reboot_counter:
            logger.info("Pump reboot detected: %d -> %d, resetting counters", reboot_counter, peer_reboot)
            reboot_counter = peer_reboot
            write_counter = 0
            read_counter = 0

        if read_counter > 0 and peer_counter <= read_counter:
            logger.error("Counter ordering violation: received %d, last %d", peer_counter, read_counter)
            raise OrderingError(peer_counter, read_counter)

        self.reboot_counter = reboot_counter
        self.write_counter = write_counter
        self.read_counter = peer_counter
        logger.debug("Counters synced: reboot=%d read=%d", reboot_counter, peer_counter)

        return plaintext[:-COUNTER_DATA_SIZE]

    def reset(self) -> None:
        """Clear the key and all counters."""
        self.shared_key = None
        self.write_counter = 0
        self.read_counter = 0
        self.reboot_counter = 0
