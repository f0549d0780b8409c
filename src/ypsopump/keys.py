"""Key exchange, shared-key import and authentication password."""

import hashlib
from dataclasses import dataclass
from typing import Optional, Tuple

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from .types import KEY_SIZE, CHALLENGE_AND_KEY_SIZE, InvalidKeyError, KeyExchangeError
from .xchacha import hchacha20

# Salt appended to the pump MAC before hashing the authorization password
AUTH_SALT = bytes([0x4F, 0xC2, 0x45, 0x4D, 0x9B, 0x81, 0x59, 0xA4, 0x93, 0xBB])

# All-zero 16-byte input block for the HChaCha20 key derivation pass
KDF_INPUT_BLOCK = bytes(16)


@dataclass
class SessionKeys:
    """Key material for one pairing."""
    local_private_key: Optional[bytes]
    local_public_key: bytes
    shared_key: Optional[bytes] = None


def generate_keypair() -> Tuple[bytes, bytes]:
    """
    Generate a random X25519 key pair.

    Returns:
        Tuple of (private_key, public_key), 32 raw bytes each
    """
    private_key = X25519PrivateKey.generate()
    private_bytes = private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    return private_bytes, public_key_to_bytes(private_key.public_key())


def public_key_to_bytes(public_key: X25519PublicKey) -> bytes:
    """Convert X25519 public key to raw bytes."""
    return public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)


def x25519_ecdh(private_key: bytes, peer_public_key: bytes) -> bytes:
    """
    Perform X25519 scalar multiplication.

    Args:
        private_key: Our 32-byte private key
        peer_public_key: Their 32-byte public key

    Returns:
        32-byte raw shared value

    Raises:
        KeyExchangeError: If a key has the wrong size or the result is
            degenerate (low-order peer point)
    """
    if len(private_key) != KEY_SIZE:
        raise KeyExchangeError(f"Private key must be {KEY_SIZE} bytes, got {len(private_key)}")
    if len(peer_public_key) != KEY_SIZE:
        raise KeyExchangeError(f"Pump public key must be {KEY_SIZE} bytes, got {len(peer_public_key)}")
    try:
        ours = X25519PrivateKey.from_private_bytes(private_key)
        return ours.exchange(X25519PublicKey.from_public_bytes(peer_public_key))
    except ValueError as e:
        raise KeyExchangeError(f"ECDH scalar multiplication failed: {e}") from e


def derive_shared_key(private_key: bytes, peer_public_key: bytes) -> bytes:
    """
    Compute the session key: X25519 followed by an HChaCha20 pass.

    raw = X25519(private_key, peer_public_key)
    shared = HChaCha20(raw, 16 zero bytes, "expand 32-byte k")
    """
    raw = x25519_ecdh(private_key, peer_public_key)
    return hchacha20(raw, KDF_INPUT_BLOCK)


def parse_pump_challenge(data: bytes) -> Tuple[bytes, bytes]:
    """
    Split the 64-byte key exchange read into challenge and pump public key.

    Returns:
        Tuple of (challenge, pump_public_key), 32 bytes each
    """
    if len(data) != CHALLENGE_AND_KEY_SIZE:
        raise KeyExchangeError(f"Expected {CHALLENGE_AND_KEY_SIZE} bytes, got {len(data)}")
    return data[:KEY_SIZE], data[KEY_SIZE:]


class KeyExchange:
    """
    Local half of the pairing handshake.

    The private key lives only between :meth:`generate_keypair` and
    :meth:`compute_shared_key`; the backend exchange in between is
    handled elsewhere.
    """

    def __init__(self) -> None:
        self.keys: Optional[SessionKeys] = None

    @property
    def public_key(self) -> Optional[bytes]:
        return self.keys.local_public_key if self.keys else None

    def generate_keypair(self) -> bytes:
        """Generate a fresh key pair and return the public key to send."""
        private_key, public_key = generate_keypair()
        self.keys = SessionKeys(local_private_key=private_key, local_public_key=public_key)
        return public_key

    def compute_shared_key(self, pump_public_key: bytes) -> bytes:
        """Derive the shared key and discard the private key."""
        if self.keys is None or self.keys.local_private_key is None:
            raise KeyExchangeError("No keypair generated - call generate_keypair() first")
        private_key = self.keys.local_private_key
        self.keys.local_private_key = None
        self.keys.shared_key = derive_shared_key(private_key, pump_public_key)
        return self.keys.shared_key


def validate_shared_key(key: bytes) -> bytes:
    """Reject keys that are not 32 bytes or are all zero."""
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(f"Shared key must be {KEY_SIZE} bytes, got {len(key)}")
    if not any(key):
        raise InvalidKeyError("All-zero key is not valid")
    return bytes(key)


def import_shared_key(key_hex: str) -> bytes:
    """
    Import a shared key from hex text.

    Whitespace and ``:``/``-`` separators and ``0x`` prefixes are ignored.

    Raises:
        InvalidKeyError: If the text is not 64 hex characters or is all zero
    """
    cleaned = "".join(key_hex.split())
    for token in (":", "-", "0x", "0X"):
        cleaned = cleaned.replace(token, "")
    cleaned = cleaned.lower()

    if not cleaned:
        raise InvalidKeyError("Key is empty")
    if any(c not in "0123456789abcdef" for c in cleaned):
        raise InvalidKeyError("Invalid hex characters found")
    if len(cleaned) != KEY_SIZE * 2:
        raise InvalidKeyError(
            f"Key must be exactly {KEY_SIZE} bytes ({KEY_SIZE * 2} hex chars), got {len(cleaned)} chars"
        )
    return validate_shared_key(bytes.fromhex(cleaned))


def key_from_file_content(content: str) -> bytes:
    """Find the first valid hex key in a text file, skipping comments."""
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("//"):
            continue
        value = line.split("=", 1)[1].strip() if "=" in line else line
        try:
            return import_shared_key(value)
        except InvalidKeyError:
            continue
    raise InvalidKeyError("No valid 32-byte hex key found in file content")


def compute_auth_password(mac_address: str) -> bytes:
    """MD5(MAC bytes || AUTH_SALT), written to the authorization channel."""
    mac_bytes = bytes.fromhex(mac_address.replace(":", ""))
    return hashlib.md5(mac_bytes + AUTH_SALT).digest()
