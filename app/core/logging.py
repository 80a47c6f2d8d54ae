"""Logging configuration for the application."""

import logging
import sys

from app.core.config import settings

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "PIL")


def setup_logging() -> logging.Logger:
    """Configure and return the ``kabsu`` logger."""
    level = logging.DEBUG if settings.DEBUG else logging.getLevelName(settings.LOG_LEVEL.upper())

    logger = logging.getLogger("kabsu")
    logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Configured already (reload, tests)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if settings.DEBUG:
        handler.setFormatter(
            logging.Formatter(
                "\n%(levelname)s [%(asctime)s] %(name)s.%(module)s:%(lineno)d\n"
                "└── %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s]: %(message)s")
        )

    logger.addHandler(handler)
    return logger


# Application logger instance
logger = setup_logging()
