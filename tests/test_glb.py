"""Tests for redundancy-checked integers."""

import pytest
from ypsopump.glb import glb_decode, glb_encode, glb_find
from ypsopump.types import FormatError, RedundancyCheckError
from .test_vectors import GLB_42_HEX


class TestEncode:
    """Test value/complement encoding."""

    def test_encode_42(self) -> None:
        assert glb_encode(42).hex() == GLB_42_HEX

    def test_encode_negative(self) -> None:
        """-1 encodes as all ones followed by zero."""
        assert glb_encode(-1) == b"\xff\xff\xff\xff\x00\x00\x00\x00"

    def test_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            glb_encode(2**31)


class TestDecode:
    """Test decoding and the integrity check."""

    @pytest.mark.parametrize("value", [0, 1, 42, 100, -1, 2**31 - 1, -(2**31)])
    def test_decode_inverts_encode(self, value: int) -> None:
        assert glb_decode(glb_encode(value)) == value

    def test_decode_42(self) -> None:
        assert glb_decode(bytes.fromhex(GLB_42_HEX)) == 42

    def test_any_corrupted_byte_fails(self) -> None:
        encoded = glb_encode(42)
        for i in range(8):
            corrupted = bytearray(encoded)
            corrupted[i] ^= 0x01
            with pytest.raises(RedundancyCheckError):
                glb_decode(bytes(corrupted))

    def test_short_input(self) -> None:
        with pytest.raises(RedundancyCheckError):
            glb_decode(b"\x2a\x00\x00\x00")

    def test_is_format_error(self) -> None:
        """Redundancy failures are format errors."""
        with pytest.raises(FormatError):
            glb_decode(bytes(8))


class TestFind:
    """Test scanning a buffer for the first valid window."""

    def test_leading_noise(self) -> None:
        data = b"\x13\x37\x00" + glb_encode(37) + b"\x00\x00"
        assert glb_find(data) == 37

    def test_first_match_wins(self) -> None:
        assert glb_find(glb_encode(5) + glb_encode(9)) == 5

    def test_no_match(self) -> None:
        assert glb_find(bytes(12)) is None
        assert glb_find(b"\x01\x02") is None
