"""
Application logger.
"""

import logging

from app.core.config import get_settings

LOGGER_NAME = "storefront_chat"

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logger(level: str | None = None) -> logging.Logger:
    """Configure and return the shared application logger."""
    log = logging.getLogger(LOGGER_NAME)
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        log.addHandler(handler)
    log.setLevel((level or get_settings().LOG_LEVEL).upper())
    return log


logger = setup_logger()
