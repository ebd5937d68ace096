"""Logging configuration."""

import logging
import sys

from migration_workflow.config import get_settings

# Third-party loggers that are too chatty at INFO for a polling client.
_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def setup_logging(level: str | None = None) -> None:
    """Configure application logging.

    Args:
        level: Optional level overriding ``LOG_LEVEL`` (used by the CLI's
            ``--verbose`` flag).
    """
    settings = get_settings()
    effective_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=effective_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if effective_level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        logging.Logger: Configured logger instance.
    """
    return logging.getLogger(name)
