"""
Structured logging configuration using structlog.

Every event carries the deployment it came from: which process emitted it
(api, worker, seed script), which order schema the store reads and which
cache backend holds snapshots. Request and task context is merged in from
contextvars on top of that.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from subscriptions_telemetry.config import Settings, get_settings


class StoreContext:
    """
    Processor stamping the storage deployment onto each event.

    Fields already present on the event (bound or passed explicitly) win.
    """

    def __init__(self, settings: Settings, component: str):
        self.fields = {
            "component": component,
            "schema": "order_tables" if settings.use_order_tables else "entity_meta",
            "cache_backend": settings.cache_backend,
        }

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in self.fields.items():
            event_dict.setdefault(key, value)
        return event_dict


def configure_logging(component: str = "api", settings: Optional[Settings] = None) -> None:
    """
    Configure structured logging for one process.

    JSON lines outside dev mode, colored console output otherwise.

    Args:
        component: Process role recorded on every event
        settings: Settings to read; the cached application settings when omitted
    """
    settings = settings or get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    if settings.log_format == "json" and not settings.dev_mode:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            StoreContext(settings, component),
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
