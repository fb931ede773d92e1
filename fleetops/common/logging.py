"""
Logging configuration helpers.
It centralizes cross-cutting concerns like settings, logging, and database access used by the API.
Modules log through `logging.getLogger(__name__)`; this helper configures the root logger once.
"""

from __future__ import annotations

import logging

from fleetops.common.settings import get_settings

_LOGGING_CONFIGURED = False


def configure_logging() -> None:
    """Configure process-wide logging from environment settings."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    settings = get_settings()
    level_name = settings.LOG_LEVEL.upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("pymongo").setLevel(max(level, logging.WARNING))
    _LOGGING_CONFIGURED = True
