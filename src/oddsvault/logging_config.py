"""
Structured logging setup.

Modules log through ``structlog.get_logger(__name__)``; the audit, security
and performance streams have their own logger names so they can be routed
separately by the log shipper.
"""

from __future__ import annotations

import logging

import structlog

from .config import LOG_LEVEL, LOG_JSON

AUDIT = "oddsvault.audit"
SECURITY = "oddsvault.security"
PERFORMANCE = "oddsvault.performance"


def _level_number(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str = LOG_LEVEL, json: bool = LOG_JSON) -> None:
    """Configure structlog once at process start (API app, CLI)."""
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # resolve sys.stdout per call so redirected streams are honoured
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None):
    return structlog.get_logger(name)


audit_log = structlog.get_logger(AUDIT)
security_log = structlog.get_logger(SECURITY)
performance_log = structlog.get_logger(PERFORMANCE)
