"""Per-request correlation ids for structured logs."""

from __future__ import annotations

import re
from contextlib import suppress
from typing import Any, Optional
from uuid import uuid4

import structlog
from flask import g

# Client-supplied ids are echoed back in a response header.
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _from_flask_g() -> Optional[str]:
    with suppress(RuntimeError):
        return getattr(g, "correlation_id", None)
    return None


def current_correlation_id() -> Optional[str]:
    return _from_flask_g() or structlog.contextvars.get_contextvars().get("correlation_id")


def ensure_correlation_id(candidate: Optional[str] = None) -> str:
    """Bind ``candidate`` (or a fresh id when it is unusable) and return it."""
    if candidate is None or not _VALID_ID.match(candidate):
        candidate = current_correlation_id() or uuid4().hex
    with suppress(RuntimeError):
        g.correlation_id = candidate
    structlog.contextvars.bind_contextvars(correlation_id=candidate)
    return candidate


def bind_request_context(url: Optional[str] = None, **extra: Any) -> None:
    """Bind the summarization target and request metadata into the logging context."""
    structlog.contextvars.bind_contextvars(url=url, **extra)


def clear_correlation_context() -> None:
    structlog.contextvars.clear_contextvars()
    with suppress(RuntimeError, AttributeError):
        del g.correlation_id
