"""Logging setup for applications embedding the engine."""

import logging
import sys

_LEVELS_BY_VERBOSE = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(
    verbose_count: int = 0,
    logger_name: str | None = None,
) -> logging.Logger:
    """Configure the root (or a named) logger from a verbosity count.

    0 → WARNING, 1 → INFO, 2 or more → DEBUG. Calling it again only updates
    the level; the stderr handler is attached once.

    Args:
        verbose_count: Number of ``-v`` style verbosity steps.
        logger_name: Logger to configure, root logger when None.

    Returns:
        The configured logger.
    """
    level = _LEVELS_BY_VERBOSE.get(verbose_count, logging.DEBUG)
    logger = logging.getLogger(logger_name or "")
    logger.setLevel(level)

    already_configured = any(
        getattr(handler, "_pokervariance_handler", False) for handler in logger.handlers
    )
    if not already_configured:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler._pokervariance_handler = True  # type: ignore[attr-defined]
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)

    return logger
