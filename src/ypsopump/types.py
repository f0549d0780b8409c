"""Protocol constants and error types for ypsopump."""

from datetime import timedelta


# Framing constants
MAX_FRAME_SIZE = 20
MAX_FRAME_PAYLOAD = 19  # 20-byte write ceiling minus 1 header byte
MAX_FRAME_COUNT = 15

# Crypto constants
KEY_SIZE = 32
NONCE_SIZE = 24  # XChaCha20 extended nonce
TAG_SIZE = 16  # Poly1305 tag
COUNTER_DATA_SIZE = 12  # reboot counter (4) + write counter (8)
CHALLENGE_AND_KEY_SIZE = 64  # challenge (32) + pump public key (32)
KEY_VALIDITY = timedelta(days=28)

# Integrity constants
CRC_SIZE = 2
GLB_SIZE = 8

# History constants
HISTORY_ENTRY_SIZE = 17
PUMP_EPOCH_OFFSET = 946684800  # 2000-01-01T00:00:00Z

# Timing
COMMAND_TIMEOUT = 10.0


# Exception types
class YpsoPumpError(Exception):
    """Base exception for ypsopump errors."""
    pass


class FormatError(YpsoPumpError):
    """Malformed or undersized payload."""
    pass


class ChecksumError(FormatError):
    """CRC trailer does not match the payload."""
    pass


class RedundancyCheckError(FormatError):
    """Value/complement pair is inconsistent or missing."""
    pass


class CryptoError(YpsoPumpError):
    """Cryptographic failure (possible tampering or wrong key)."""
    pass


class AuthenticationError(CryptoError):
    """AEAD tag verification failed."""
    pass


class KeyExchangeError(CryptoError):
    """Key exchange could not produce a shared key."""
    pass


class InvalidKeyError(CryptoError):
    """Shared key is malformed or not acceptable."""
    pass


class SessionNotReadyError(YpsoPumpError):
    """Session has no shared key."""
    pass


class OrderingError(YpsoPumpError):
    """Device counter did not strictly increase."""

    def __init__(self, received: int, last: int) -> None:
        self.received = received
        self.last = last
        super().__init__(f"Read counter not increasing: {received} <= {last}")


class CommandTimeoutError(YpsoPumpError, TimeoutError):
    """No response within the command budget."""

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:.1f}s")


class TransportError(YpsoPumpError):
    """Frame write or read failed."""
    pass


class DisconnectedError(TransportError):
    """Link dropped while an operation was in flight."""
    pass


class CounterSyncError(YpsoPumpError):
    """Counters could not be synchronized before an encrypted write."""
    pass


class ConfigurationError(YpsoPumpError):
    """Command code has no logical channel or the channel map is invalid."""
    pass


class HistoryIncompleteError(YpsoPumpError):
    """History download aborted before all requested entries were read."""

    def __init__(self, log_name: str, entries: list, requested: int) -> None:
        self.log_name = log_name
        self.entries = entries
        self.requested = requested
        super().__init__(
            f"{log_name} history incomplete: read {len(entries)} of {requested} entries"
        )


class KeyNotFoundError(YpsoPumpError):
    """No shared key stored for a pump."""

    def __init__(self, serial: str) -> None:
        self.serial = serial
        super().__init__(f"Shared key not found for pump: {serial}")


class KeyExpiredError(YpsoPumpError):
    """Stored shared key is past its validity window."""

    def __init__(self, serial: str) -> None:
        self.serial = serial
        super().__init__(f"Shared key expired for pump: {serial}")
