"""
Structured logging for consent_sync.

Library modules log through ``structlog.get_logger(__name__)`` and never
configure anything themselves. Hosts call configure_logging() (or
configure_from_settings()) once at startup to pick console or JSON output.

Each coordinator workflow runs inside sync_cycle(), which binds a short
cycle id and the property id into structlog's contextvars so every entry
logged by the client and coordinator during that workflow can be grouped.
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

SERVICE_NAME = "consent-sync"
REDACTED = "[REDACTED]"

# Matched case-insensitively against key names, at any nesting depth
SENSITIVE_KEYS = (
    "auth",
    "token",
    "cookie",
    "euconsent",
    "uspstring",
    "tc_data",
    "tcdata",
    "local_state",
    "localstate",
)


def _is_sensitive(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEYS)


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: REDACTED if _is_sensitive(k) else _redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def redact_consent_data(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace consent strings, local state blobs and auth ids with a marker."""
    redacted: EventDict = _redact(event_dict)
    return redacted


def add_library_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    from consent_sync import __version__

    event_dict.setdefault("library", SERVICE_NAME)
    event_dict.setdefault("library_version", __version__)
    return event_dict


def configure_logging(level: str = "INFO", json_output: bool = False, redact: bool = True) -> None:
    """
    Install the structlog processor chain and a stdout handler.

    Args:
        level: Minimum stdlib level name (DEBUG, INFO, WARNING, ...)
        json_output: Render one JSON object per line instead of console output
        redact: Mask consent payloads and auth ids before rendering
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_library_info,
    ]
    if redact:
        processors.append(redact_consent_data)

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())
    # httpx logs full request URLs, which carry authId as a query parameter
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def configure_from_settings() -> None:
    from consent_sync.config import get_settings

    current = get_settings()
    configure_logging(level=current.log_level, json_output=current.json_logs)


@contextmanager
def sync_cycle(workflow: str, **context: Any) -> Iterator[str]:
    """
    Bind a fresh cycle id and ``context`` for the duration of one workflow.

    Previous values are restored on exit, so nested cycles (a workflow
    started from inside another) unwind cleanly.
    """
    cycle_id = uuid.uuid4().hex[:12]
    tokens = structlog.contextvars.bind_contextvars(cycle_id=cycle_id, workflow=workflow, **context)
    try:
        yield cycle_id
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


@contextmanager
def log_duration(logger: Any, operation: str, **context: Any) -> Iterator[None]:
    """
    Log ``<operation>_completed`` with the elapsed time, or ``<operation>_failed``.

    Failures are logged by exception type only. Transport exceptions render
    the request URL, and query strings may hold an auth id.
    """
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.warning(
            f"{operation}_failed",
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            error_type=type(e).__name__,
            **context,
        )
        raise
    logger.debug(
        f"{operation}_completed",
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
        **context,
    )


__all__ = [
    "SERVICE_NAME",
    "add_library_info",
    "configure_from_settings",
    "configure_logging",
    "log_duration",
    "redact_consent_data",
    "sync_cycle",
]
