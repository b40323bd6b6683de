"""
Logging setup for the PropertyHub backend.

Usage:
    from propertyhub.app.core.logging import setup_logging
    setup_logging("INFO")

Modules log through ``logging.getLogger(__name__)``; everything under the
``propertyhub`` namespace ends up on the handler installed here.
"""

import logging
import sys

LOGGER_NAME = "propertyhub"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    # Prevent duplicate handlers on uvicorn reload
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger
