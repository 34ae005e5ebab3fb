"""Logging setup for the application entry point."""

from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DEFAULT_LEVEL = "INFO"


def configure_logging(level: str | None = None) -> None:
    """Install one stderr handler on the package logger.

    The level comes from ``level``, then ``FINANCE_COACH_LOG_LEVEL``, then INFO.
    Calling this twice does not add a second handler.
    """
    name = (level or os.environ.get("FINANCE_COACH_LOG_LEVEL") or DEFAULT_LEVEL).upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logger = logging.getLogger("finance_coach")
    logger.setLevel(resolved)
    if not any(getattr(h, "_finance_coach", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._finance_coach = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


__all__ = ["LOG_FORMAT", "configure_logging"]
