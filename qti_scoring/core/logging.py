"""
Logging setup - QTI Rubric Scoring
qti_scoring/core/logging.py

Engine modules log with structlog, the batch layer with stdlib logging.
Both end up on stderr; stdout carries the CLI error JSON only.

Importing ``qti_scoring`` calls ``use_stdlib_logging()``, so library
callers that never configure logging still keep structlog events off
stdout: they go through stdlib logging (warnings reach stderr through
its last-resort handler). ``configure_logging()`` replaces this setup.
"""

import logging
import sys

import structlog


def use_stdlib_logging() -> None:
    """Hand structlog events to stdlib logging unless structlog is already configured."""
    if structlog.is_configured():
        return
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def configure_logging(level: str = "WARNING", fmt: str = "console") -> None:
    """Route stdlib logging and structlog to stderr at ``level``."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(message)s" if fmt == "json" else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
