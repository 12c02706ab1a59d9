"""structlog configuration shared by the three services.

Call ``configure_logging`` once at startup, then log with
``structlog.get_logger(__name__)`` and snake_case event names::

    log = structlog.get_logger(__name__).bind(service="votes")
    log.info("vote_created", vote_id="5", voter_id="1")
"""

import logging
from typing import List, Optional

import structlog
from structlog.typing import Processor

from .config import LOG_FORMAT, LOG_LEVEL


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(
    level: Optional[str] = None, fmt: Optional[str] = None, service: str = ""
) -> None:
    """Configure structlog for JSON (``fmt="json"``) or console output."""
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if (fmt or LOG_FORMAT) == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level(level or LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if service:
        structlog.contextvars.bind_contextvars(app=service)
