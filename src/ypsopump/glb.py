"""GLB "safe variable" integers: a 4-byte value guarded by its complement.

Wire format (8 bytes)::

    value (int32 LE) || ~value (int32 LE)

Used for setting identifiers and values, TBR parameters, and history
counts and indices.
"""

from typing import Optional

from .types import GLB_SIZE, RedundancyCheckError


def glb_encode(value: int) -> bytes:
    """Encode a signed 32-bit integer with its bitwise complement."""
    if not -(2**31) <= value < 2**31:
        raise ValueError(f"GLB value must fit in int32, got {value}")
    return value.to_bytes(4, "little", signed=True) + (~value).to_bytes(4, "little", signed=True)


def _pair(data: bytes, offset: int) -> tuple:
    value = int.from_bytes(data[offset : offset + 4], "little", signed=True)
    check = int.from_bytes(data[offset + 4 : offset + 8], "little", signed=True)
    return value, check


def glb_decode(data: bytes) -> int:
    """Decode the first 8 bytes of ``data``.

    Raises:
        RedundancyCheckError: If fewer than 8 bytes or the complement
            does not match.
    """
    if len(data) < GLB_SIZE:
        raise RedundancyCheckError(f"GLB data must be at least {GLB_SIZE} bytes, got {len(data)}")
    value, check = _pair(data, 0)
    if value != ~check:
        raise RedundancyCheckError(f"GLB integrity check failed: {value} vs {~check}")
    return value


def glb_find(data: bytes) -> Optional[int]:
    """Return the value of the first consistent 8-byte window, if any.

    Responses can carry leading padding before the record, so every
    offset is tried in order.
    """
    for start in range(len(data) - GLB_SIZE + 1):
        value, check = _pair(data, start)
        if value == ~check:
            return value
    return None
