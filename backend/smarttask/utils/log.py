"""Structured logging entry point.

The rest of the codebase can *always* ``from smarttask.utils.log import log``
and use ``log.info("msg", key=value)``.  Output goes through the stdlib
``logging`` handlers configured in :pymod:`smarttask.main` so that level
filtering (``LOG_LEVEL``) applies to structured events as well.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

if not structlog.is_configured():
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

# Keep the logger global so every import shares the same base instance.
log = structlog.get_logger("smarttask")


def get_logger(**bindings: Any) -> structlog.stdlib.BoundLogger:  # noqa: D401 – factory helper
    """Return a child/bound logger with optional key/value bindings."""

    return log.bind(**bindings)


def configure_stdlib_logging(level_name: str) -> None:
    """Configure the root handler once; unknown level names fall back to INFO."""

    level = getattr(logging, level_name.upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s - %(name)s - %(message)s", handlers=[logging.StreamHandler()])

    # Suppress verbose INFO logs from known-noisy modules
    for noisy in ("sqlalchemy.engine", "httpx", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
