"""Logging setup for applications embedding the orchestrator.

Library modules only create loggers (``logging.getLogger(__name__)``) and
never configure handlers.  Applications call :func:`configure_logging` once.
"""

from __future__ import annotations

import logging

LOGGER_NAME = "artifact_orchestrator"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(
    level: int | str = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
    handler: logging.Handler | None = None,
) -> logging.Logger:
    """Attach a single handler to the package logger and set its level.

    Calling it again replaces the handler instead of stacking another one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
