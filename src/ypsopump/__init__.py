"""
YpsoPump - Secure BLE command protocol for the YpsoPump insulin pump

Python implementation of the pump's framed command/response protocol using
X25519 + XChaCha20-Poly1305 session encryption.
"""

from .framing import chunk_payload, reassemble_frames, total_frames, frame_header
from .crc import crc16, append_crc, is_valid_crc, strip_crc
from .glb import glb_encode, glb_decode, glb_find
from .xchacha import hchacha20, xchacha20_poly1305_encrypt, xchacha20_poly1305_decrypt
from .keys import (
    KeyExchange,
    SessionKeys,
    generate_keypair,
    derive_shared_key,
    parse_pump_challenge,
    import_shared_key,
    key_from_file_content,
    compute_auth_password,
)
from .session import SessionConfig, PumpSession
from .commands import (
    CommandCode,
    CommandGroup,
    CommandDescriptor,
    COMMAND_TABLE,
    DEFAULT_CHANNELS,
    HistoryLog,
    EVENTS,
    ALERTS,
    SYSTEM,
)
from .models import (
    DeliveryMode,
    EventType,
    BolusNotificationStatus,
    HistoryEntry,
    SystemStatus,
    BolusStatus,
    BolusNotification,
    BolusResponse,
    TbrResponse,
    VersionInfo,
)
from .parser import (
    parse_system_status,
    parse_bolus_status,
    parse_bolus_response,
    parse_tbr_response,
    parse_history_entry,
    parse_bolus_notification,
    parse_date,
    parse_time,
)
from .transport import PumpTransport
from .storage import SharedKeyStorage, InMemoryKeyStorage, StoredKey
from .guard import BolusGuard, PreFlightResult
from .client import ClientConfig, PumpClient
from .types import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    PUMP_EPOCH_OFFSET,
    YpsoPumpError,
    FormatError,
    ChecksumError,
    RedundancyCheckError,
    CryptoError,
    AuthenticationError,
    KeyExchangeError,
    InvalidKeyError,
    SessionNotReadyError,
    OrderingError,
    CommandTimeoutError,
    TransportError,
    DisconnectedError,
    CounterSyncError,
    ConfigurationError,
    HistoryIncompleteError,
    KeyNotFoundError,
    KeyExpiredError,
)

__version__ = "0.1.0"

__all__ = [
    # Framing
    "chunk_payload",
    "reassemble_frames",
    "total_frames",
    "frame_header",
    # Checksum
    "crc16",
    "append_crc",
    "is_valid_crc",
    "strip_crc",
    # Redundancy integers
    "glb_encode",
    "glb_decode",
    "glb_find",
    # Crypto
    "hchacha20",
    "xchacha20_poly1305_encrypt",
    "xchacha20_poly1305_decrypt",
    # Keys
    "KeyExchange",
    "SessionKeys",
    "generate_keypair",
    "derive_shared_key",
    "parse_pump_challenge",
    "import_shared_key",
    "key_from_file_content",
    "compute_auth_password",
    # Session
    "SessionConfig",
    "PumpSession",
    # Commands
    "CommandCode",
    "CommandGroup",
    "CommandDescriptor",
    "COMMAND_TABLE",
    "DEFAULT_CHANNELS",
    "HistoryLog",
    "EVENTS",
    "ALERTS",
    "SYSTEM",
    # Models
    "DeliveryMode",
    "EventType",
    "BolusNotificationStatus",
    "HistoryEntry",
    "SystemStatus",
    "BolusStatus",
    "BolusNotification",
    "BolusResponse",
    "TbrResponse",
    "VersionInfo",
    # Parsers
    "parse_system_status",
    "parse_bolus_status",
    "parse_bolus_response",
    "parse_tbr_response",
    "parse_history_entry",
    "parse_bolus_notification",
    "parse_date",
    "parse_time",
    # Transport
    "PumpTransport",
    # Storage
    "SharedKeyStorage",
    "InMemoryKeyStorage",
    "StoredKey",
    # Guard
    "BolusGuard",
    "PreFlightResult",
    # Client
    "ClientConfig",
    "PumpClient",
    # Constants
    "KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "PUMP_EPOCH_OFFSET",
    # Errors
    "YpsoPumpError",
    "FormatError",
    "ChecksumError",
    "RedundancyCheckError",
    "CryptoError",
    "AuthenticationError",
    "KeyExchangeError",
    "InvalidKeyError",
    "SessionNotReadyError",
    "OrderingError",
    "CommandTimeoutError",
    "TransportError",
    "DisconnectedError",
    "CounterSyncError",
    "ConfigurationError",
    "HistoryIncompleteError",
    "KeyNotFoundError",
    "KeyExpiredError",
]
