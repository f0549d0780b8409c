"""Frame splitting and reassembly for the 20-byte BLE write ceiling.

Frame layout::

    +--------------------------------------+---------------------+
    |               Header                 |       Payload       |
    | (index+1) << 4 | total_frames & 0x0F |   up to 19 bytes    |
    +--------------------------------------+---------------------+

- Header high nibble: 1-based frame position
- Header low nibble: total frame count (0 is read as 1)
- An empty payload travels as the single header byte ``0x10``
"""

from __future__ import annotations

from .types import MAX_FRAME_COUNT, MAX_FRAME_PAYLOAD, FormatError


def frame_header(index: int, total_frames: int) -> int:
    """Build the header byte for the frame at 0-based ``index``."""
    return (((index + 1) << 4) & 0xF0) | (total_frames & 0x0F)


def chunk_payload(data: bytes) -> list[bytes]:
    """Split a payload into header-prefixed frames of at most 20 bytes.

    Args:
        data: The full logical payload.

    Returns:
        Frames in transmission order. Always at least one.

    Raises:
        FormatError: If the payload needs more than 15 frames.
    """
    if not data:
        return [bytes([frame_header(0, 0)])]

    total_frames = max(1, (len(data) + MAX_FRAME_PAYLOAD - 1) // MAX_FRAME_PAYLOAD)
    if total_frames > MAX_FRAME_COUNT:
        raise FormatError(
            f"Payload of {len(data)} bytes needs {total_frames} frames, max is {MAX_FRAME_COUNT}"
        )
    frames: list[bytes] = []
    for idx in range(total_frames):
        chunk = data[idx * MAX_FRAME_PAYLOAD : (idx + 1) * MAX_FRAME_PAYLOAD]
        frames.append(bytes([frame_header(idx, total_frames)]) + chunk)
    return frames


def total_frames(first_byte: int) -> int:
    """Read the total frame count from a header byte (0 means 1)."""
    count = first_byte & 0x0F
    return count if count else 1


def frame_index(header: int) -> int:
    """Read the 0-based frame position from a header byte."""
    return max(0, ((header & 0xF0) >> 4) - 1)


def reassemble_frames(frames: list[bytes]) -> bytes:
    """Concatenate frame payloads in arrival order, dropping each header.

    Missing frames are not detected here; callers compare the frame count
    against :func:`total_frames` before trusting the result.
    """
    assembled = b""
    for frame in frames:
        if len(frame) > 1:
            assembled += frame[1:]
    return assembled
