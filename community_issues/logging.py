"""Structured logging configuration with structlog.

Call ``configure_logging`` once at startup; modules then log with
``structlog.get_logger(__name__)`` using event-style names::

    log = structlog.get_logger(__name__)
    log.info("issue_confirmed", issue_id=42)
"""

import logging
from typing import List, Optional

import structlog
from structlog.typing import Processor

from .config import Settings, get_settings


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure structlog for the application.

    ``log_format == "json"`` renders one JSON object per line for log
    aggregation; anything else uses the colored console renderer.
    """
    settings = settings or get_settings()

    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_level(settings.log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
