from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator

import structlog


def _add_log_level(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    event_dict["level"] = method_name
    return event_dict


def configure_logging(env: str = "development", debug: bool = False) -> None:
    """Configure structlog: readable console output in development, JSON elsewhere."""
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer: Any
    if env == "development":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def operation_context(operation: str, **fields: Any) -> Iterator[str]:
    """Bind an operation name and id to every log line emitted inside the block.

    Yields the generated operation id. Previously bound keys are restored on exit
    so nested operations (a reconcile pass calling check_status) keep their parent's
    context afterwards.
    """
    operation_id = uuid.uuid4().hex[:12]
    tokens = structlog.contextvars.bind_contextvars(
        operation=operation, operation_id=operation_id, **fields
    )
    try:
        yield operation_id
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
