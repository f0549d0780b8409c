"""HChaCha20 and XChaCha20-Poly1305 built on the IETF ChaCha20-Poly1305 AEAD.

XChaCha20-Poly1305 derives a subkey with HChaCha20 from the key and the
first 16 nonce bytes, then runs ChaCha20-Poly1305 with the subkey and a
12-byte nonce of four zero bytes followed by the last 8 nonce bytes.
"""

import struct
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .types import KEY_SIZE, NONCE_SIZE, AuthenticationError

SIGMA = b"expand 32-byte k"

_MASK32 = 0xFFFFFFFF


def _rotl32(v: int, n: int) -> int:
    return ((v << n) | (v >> (32 - n))) & _MASK32


def _quarter_round(state: list, a: int, b: int, c: int, d: int) -> None:
    state[a] = (state[a] + state[b]) & _MASK32
    state[d] = _rotl32(state[d] ^ state[a], 16)
    state[c] = (state[c] + state[d]) & _MASK32
    state[b] = _rotl32(state[b] ^ state[c], 12)
    state[a] = (state[a] + state[b]) & _MASK32
    state[d] = _rotl32(state[d] ^ state[a], 8)
    state[c] = (state[c] + state[d]) & _MASK32
    state[b] = _rotl32(state[b] ^ state[c], 7)


def hchacha20(key: bytes, nonce: bytes, constant: bytes = SIGMA) -> bytes:
    """
    Derive a 32-byte subkey with HChaCha20.

    Args:
        key: 32-byte input key
        nonce: 16-byte input block
        constant: 16-byte domain separator (defaults to "expand 32-byte k")

    Returns:
        32-byte derived key (state words 0-3 and 12-15 after 20 rounds)
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != 16:
        raise ValueError(f"Nonce must be 16 bytes, got {len(nonce)}")
    if len(constant) != 16:
        raise ValueError(f"Constant must be 16 bytes, got {len(constant)}")

    state = list(struct.unpack("<16I", constant + key + nonce))

    for _ in range(10):
        # Column rounds
        _quarter_round(state, 0, 4, 8, 12)
        _quarter_round(state, 1, 5, 9, 13)
        _quarter_round(state, 2, 6, 10, 14)
        _quarter_round(state, 3, 7, 11, 15)
        # Diagonal rounds
        _quarter_round(state, 0, 5, 10, 15)
        _quarter_round(state, 1, 6, 11, 12)
        _quarter_round(state, 2, 7, 8, 13)
        _quarter_round(state, 3, 4, 9, 14)

    return struct.pack("<8I", *state[0:4], *state[12:16])


def _subkey_and_nonce(key: bytes, nonce: bytes) -> tuple:
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"XChaCha20 nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    return hchacha20(key, nonce[:16]), b"\x00\x00\x00\x00" + nonce[16:24]


def xchacha20_poly1305_encrypt(
    key: bytes,
    nonce: bytes,
    plaintext: bytes,
    aad: Optional[bytes] = None,
) -> bytes:
    """
    Encrypt with XChaCha20-Poly1305.

    Returns:
        Ciphertext with the 16-byte Poly1305 tag appended
    """
    subkey, chacha_nonce = _subkey_and_nonce(key, nonce)
    return ChaCha20Poly1305(subkey).encrypt(chacha_nonce, plaintext, aad)


def xchacha20_poly1305_decrypt(
    key: bytes,
    nonce: bytes,
    ciphertext: bytes,
    aad: Optional[bytes] = None,
) -> bytes:
    """
    Decrypt and verify XChaCha20-Poly1305 ciphertext (tag included).

    Raises:
        AuthenticationError: If the tag does not verify
    """
    subkey, chacha_nonce = _subkey_and_nonce(key, nonce)
    try:
        return ChaCha20Poly1305(subkey).decrypt(chacha_nonce, ciphertext, aad)
    except InvalidTag as e:
        raise AuthenticationError("Decryption failed - invalid key or tampered data") from e
