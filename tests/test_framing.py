"""Tests for frame splitting and reassembly."""

import pytest
from ypsopump.framing import (
    chunk_payload,
    frame_header,
    frame_index,
    reassemble_frames,
    total_frames,
)
from ypsopump.types import FormatError


class TestChunking:
    """Test outbound payload chunking."""

    def test_25_byte_payload(self) -> None:
        """A 25-byte payload splits into 19 + 6 bytes with headers 0x12 and 0x22."""
        payload = bytes(range(25))
        frames = chunk_payload(payload)

        assert len(frames) == 2
        assert frames[0][0] == 0x12
        assert frames[0][1:] == payload[:19]
        assert frames[1][0] == 0x22
        assert frames[1][1:] == payload[19:]

    def test_single_frame(self) -> None:
        """Payloads up to 19 bytes fit one frame."""
        frames = chunk_payload(b"\xaa" * 19)
        assert frames == [b"\x11" + b"\xaa" * 19]

    def test_empty_payload(self) -> None:
        """An empty payload is a single header-only frame."""
        frames = chunk_payload(b"")
        assert frames == [b"\x10"]
        assert total_frames(frames[0][0]) == 1

    def test_frames_never_exceed_20_bytes(self) -> None:
        """Every frame respects the 20-byte write ceiling."""
        for size in (1, 18, 19, 20, 38, 39, 100, 285):
            assert all(len(f) <= 20 for f in chunk_payload(bytes(size)))

    def test_fifteen_frames_is_the_limit(self) -> None:
        """285 bytes fill 15 frames; one more byte cannot be framed."""
        frames = chunk_payload(bytes(285))
        assert len(frames) == 15
        assert total_frames(frames[0][0]) == 15
        assert frame_index(frames[-1][0]) == 14

        with pytest.raises(FormatError, match="16 frames"):
            chunk_payload(bytes(286))

    def test_encrypted_status_size(self) -> None:
        """A 60-byte encrypted response needs 4 frames."""
        frames = chunk_payload(bytes(60))
        assert [f[0] for f in frames] == [0x14, 0x24, 0x34, 0x44]


class TestHeaders:
    """Test header byte helpers."""

    def test_frame_header(self) -> None:
        assert frame_header(0, 1) == 0x11
        assert frame_header(2, 3) == 0x33

    def test_total_frames_zero_means_one(self) -> None:
        assert total_frames(0x10) == 1
        assert total_frames(0x00) == 1

    def test_total_frames(self) -> None:
        assert total_frames(0x13) == 3
        assert total_frames(0x2F) == 15

    def test_frame_index(self) -> None:
        assert frame_index(0x12) == 0
        assert frame_index(0x22) == 1


class TestReassembly:
    """Test inbound reassembly."""

    @pytest.mark.parametrize("size", [0, 1, 19, 20, 25, 57, 200])
    def test_reassemble_inverts_chunk(self, size: int) -> None:
        """Reassembling chunked frames yields the original payload."""
        payload = bytes((i * 7) & 0xFF for i in range(size))
        assert reassemble_frames(chunk_payload(payload)) == payload

    def test_missing_frames_return_partial(self) -> None:
        """Reassembly returns what it has when frames are missing."""
        frames = chunk_payload(bytes(range(25)))
        assert reassemble_frames(frames[:1]) == bytes(range(19))
