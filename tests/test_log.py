"""Tests for log redaction."""

import logging

from ypsopump.log import RedactingFilter, get_logger, redact
from .test_vectors import SHARED_KEY_HEX, XCHACHA_NONCE_HEX


class TestRedaction:
    """Test secret masking in log output."""

    def test_key_redacted(self) -> None:
        assert redact(f"key={SHARED_KEY_HEX}") == "key=[KEY_REDACTED]"

    def test_nonce_redacted(self) -> None:
        assert redact(f"nonce {XCHACHA_NONCE_HEX}") == "nonce [NONCE_REDACTED]"

    def test_short_hex_untouched(self) -> None:
        assert redact("crc 4aab counter 0000000000000002") == "crc 4aab counter 0000000000000002"

    def test_filter_rewrites_args(self) -> None:
        record = logging.LogRecord("ypsopump", logging.INFO, __file__, 1, "shared %s", (SHARED_KEY_HEX,), None)
        assert RedactingFilter().filter(record)
        assert record.getMessage() == "shared [KEY_REDACTED]"

    def test_filter_attached_once(self) -> None:
        logger = get_logger("ypsopump.test")
        get_logger("ypsopump.test")
        assert sum(isinstance(f, RedactingFilter) for f in logger.filters) == 1
