"""Log filters for PII masking and correlation ID defaults."""

import logging
import re


class PIIFilter(logging.Filter):
    """Masks e-mail addresses and phone numbers in the rendered log message.

    Cancellation reasons and chat text reach the logs as ``%s`` arguments, so
    the message is rendered first and the arguments are dropped once masked.
    """

    EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
    # Bounded so UUID fragments and ride ids are left alone
    PHONE_PATTERN = re.compile(r"(?<![\w-])\+?\d{3}[-.\s]?\d{3}[-.\s]?\d{4}(?![\w-])")

    @classmethod
    def mask(cls, text: str) -> str:
        if "@" in text:
            text = cls.EMAIL_PATTERN.sub("[EMAIL]", text)
        if any(c.isdigit() for c in text):
            text = cls.PHONE_PATTERN.sub("[PHONE]", text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not isinstance(record.msg, str):
            return True
        message = record.getMessage()
        masked = self.mask(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class DefaultCorrelationFilter(logging.Filter):
    """Fills ``correlation_id`` with ``-`` for records logged outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True
