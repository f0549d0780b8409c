"""16-bit checksum trailer for unencrypted command payloads.

The pump computes a CRC-32 (polynomial 0x04C11DB7, MSB-first, initial
value 0xFFFFFFFF, no final XOR) over a "bit-stuffed" copy of the payload:
the input is zero-padded to a multiple of 4 bytes and every 4-byte block
is byte-reversed. Only the low 16 bits are kept, sent little-endian.
"""

from __future__ import annotations

from .types import CRC_SIZE, ChecksumError

CRC_POLY = 0x04C11DB7


def _build_table() -> list[int]:
    table = []
    for idx in range(256):
        value = idx << 24
        for _ in range(8):
            if value & 0x80000000:
                value = ((value << 1) & 0xFFFFFFFF) ^ CRC_POLY
            else:
                value = (value << 1) & 0xFFFFFFFF
        table.append(value)
    return table


CRC_TABLE = _build_table()


def bitstuff(data: bytes) -> bytes:
    """Zero-pad to a 4-byte boundary and reverse each 4-byte block."""
    if not data:
        return b""
    padded = data + b"\x00" * (-len(data) % 4)
    return b"".join(padded[i : i + 4][::-1] for i in range(0, len(padded), 4))


def crc16(payload: bytes) -> bytes:
    """Compute the 2-byte little-endian checksum trailer for ``payload``."""
    crc = 0xFFFFFFFF
    for byte in bitstuff(payload):
        crc = ((crc << 8) & 0xFFFFFFFF) ^ CRC_TABLE[((crc >> 24) ^ byte) & 0xFF]
    return (crc & 0xFFFF).to_bytes(2, "little")


def append_crc(payload: bytes) -> bytes:
    """Return ``payload || crc16(payload)``."""
    return payload + crc16(payload)


def is_valid_crc(payload: bytes) -> bool:
    """True iff the last two bytes are the checksum of the rest."""
    if len(payload) < CRC_SIZE:
        return False
    return crc16(payload[:-CRC_SIZE]) == payload[-CRC_SIZE:]


def strip_crc(payload: bytes) -> bytes:
    """Validate and remove the checksum trailer.

    Raises:
        ChecksumError: If the trailer is missing or wrong.
    """
    if not is_valid_crc(payload):
        raise ChecksumError(f"Invalid checksum on {len(payload)}-byte payload")
    return payload[:-CRC_SIZE]


def strip_crc_if_valid(payload: bytes) -> bytes:
    """Remove the checksum trailer only when it validates."""
    return payload[:-CRC_SIZE] if is_valid_crc(payload) else payload
