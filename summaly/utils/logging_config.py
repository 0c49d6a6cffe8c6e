"""structlog setup shared by the web service and library callers.

Events are rendered as JSON lines unless ``LOG_FORMAT=plain``. Records from
stdlib loggers (werkzeug, urllib3, Flask) go through the same processor
chain, so every line carries ``event``, ``correlation_id`` and ``url``.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional

import structlog

_LOGGING_INITIALISED = False

REQUIRED_EVENT_FIELDS = ("event", "correlation_id", "url")

_CONTEXT_FIELDS = ("correlation_id", "url", "path")

_PROBE_PATHS = frozenset({"/health", "/healthz"})
_REQUEST_EVENTS = frozenset({"http.request", "http.response"})

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = {
    "werkzeug": logging.INFO,
    "urllib3": logging.WARNING,
    "charset_normalizer": logging.WARNING,
}


def _inject_event_defaults(
    _: logging.Logger, __: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    context = structlog.contextvars.get_contextvars()
    for key in _CONTEXT_FIELDS:
        if key not in event_dict and key in context:
            event_dict[key] = context[key]

    if "event" not in event_dict:
        event_dict["event"] = event_dict.get("message") or event_dict.get("logger", "log.event")

    for field in REQUIRED_EVENT_FIELDS:
        event_dict.setdefault(field, None)
    return event_dict


def _drop_health_probes(
    _: logging.Logger, __: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Drop request logs for liveness probes, which fire every few seconds."""
    if event_dict.get("path") in _PROBE_PATHS and event_dict.get("event") in _REQUEST_EVENTS:
        raise structlog.DropEvent
    return event_dict


def _shared_processors(log_format: str) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _inject_event_defaults,
        _drop_health_probes,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if log_format == "plain":
        processors.append(structlog.processors.UnicodeDecoder())
    return processors


def _resolve_format(log_format: Optional[str]) -> str:
    value = (log_format or os.getenv("LOG_FORMAT", "json")).strip().lower()
    return value if value in {"json", "plain"} else "json"


def setup_logging(
    level: Optional[str] = None, log_format: Optional[str] = None, force: bool = False
) -> None:
    """Configure structlog and the root logger once per process.

    ``level`` and ``log_format`` default to the ``LOG_LEVEL`` and
    ``LOG_FORMAT`` environment variables. Pass ``force=True`` to reconfigure.
    """
    global _LOGGING_INITIALISED
    if _LOGGING_INITIALISED and not force:
        return

    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_format = _resolve_format(log_format)
    shared = _shared_processors(log_format)

    renderer = (
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
        if log_format == "plain"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer, foreign_pre_chain=shared, fmt="%(message)s"
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    _LOGGING_INITIALISED = True
