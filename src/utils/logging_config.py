"""Structured logger setup shared across Lambdas."""

import logging
import os

from pythonjsonlogger import jsonlogger

# Extra keys that must never reach CloudWatch in clear text.
_SENSITIVE_KEYS = frozenset({"signing_secret", "authorization", "admin_token", "signature"})


class RedactSensitiveFilter(logging.Filter):
    """Mask sensitive ``extra`` fields before they are formatted."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in _SENSITIVE_KEYS:
            if key in record.__dict__:
                setattr(record, key, "***")
        return True


def get_logger(name: str) -> logging.Logger:
    """
    Configure a JSON logger once and reuse it.

    Level comes from LOG_LEVEL so noisy environments can be tuned without a deploy.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        "%(levelname)s %(name)s %(message)s %(asctime)s"
    )
    handler.setFormatter(formatter)
    handler.addFilter(RedactSensitiveFilter())
    logger.addHandler(handler)
    logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
    logger.propagate = False
    return logger
