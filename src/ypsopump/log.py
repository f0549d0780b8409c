"""Logger factory that keeps key material out of log output."""

import logging
import re

_HEX_KEY_PATTERN = re.compile(r"[0-9a-fA-F]{64}")
_HEX_NONCE_PATTERN = re.compile(r"[0-9a-fA-F]{48}")


def redact(message: str) -> str:
    """Replace 32-byte hex keys and 24-byte hex nonces with placeholders."""
    message = _HEX_KEY_PATTERN.sub("[KEY_REDACTED]", message)
    return _HEX_NONCE_PATTERN.sub("[NONCE_REDACTED]", message)


class RedactingFilter(logging.Filter):
    """Logging filter that redacts secrets from the formatted message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger with the redacting filter attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, RedactingFilter) for f in logger.filters):
        logger.addFilter(RedactingFilter())
    return logger
