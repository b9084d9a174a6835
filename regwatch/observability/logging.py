"""
Structured logging configuration using structlog.

Provides JSON-formatted logs for production and pretty console
logs for development. Pipeline runs bind ``run_id`` and ``source_id``
so every line emitted while a source is processed can be correlated.

Logs go to stderr so ``regwatch run`` can print its JSON response on
stdout.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from regwatch.config.settings import get_settings

_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "openai", "asyncpg")


def setup_logging(json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_logs: Force JSON (True) or console (False) rendering.
            Defaults to JSON in production only.

    Usage:
        setup_logging()
        logger = structlog.get_logger()
        logger.info("Fetched feed", source_id="fsis_recalls", items=12)
    """
    settings = get_settings()
    if json_logs is None:
        json_logs = settings.is_production

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level),
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def error_context(
    function_name: str,
    *,
    endpoint: str | None = None,
    status_code: int | None = None,
    attempt: int | None = None,
    will_retry: bool = False,
    **extra: Any,
) -> dict[str, Any]:
    """
    Build the structured context attached to every unrecoverable error.

    Keys with a None value are dropped so log lines stay compact.

    Args:
        function_name: Logical operation that failed (e.g. ``fetch_source``)
        endpoint: URL or endpoint involved
        status_code: HTTP status, if any
        attempt: Attempt count at the time of failure
        will_retry: Whether the caller is going to retry
        **extra: Additional fields

    Returns:
        Context dictionary
    """
    context: dict[str, Any] = {
        "function_name": function_name,
        "endpoint": endpoint,
        "status_code": status_code,
        "attempt": attempt,
        "will_retry": will_retry,
        **extra,
    }
    return {k: v for k, v in context.items() if v is not None}
