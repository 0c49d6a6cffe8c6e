from __future__ import annotations

from typing import Callable, Optional
from urllib.parse import urlparse, urlunparse

import structlog

from summaly.config import ScrapingOptions
from summaly.services import fetch as fetch_service
from summaly.services.document import HtmlDocument
from summaly.services.exceptions import SummalyError

logger = structlog.get_logger(__name__)

# Returns the HTTP status of a HEAD request, or raises SummalyError.
Prober = Callable[[str, ScrapingOptions], int]


def head_status(url: str, options: ScrapingOptions) -> int:
    return fetch_service.head(url, options).status


def declared_icon(document: HtmlDocument) -> Optional[str]:
    """Absolute URL of the first ``<link rel="icon">`` (``shortcut icon`` included)."""
    return document.resolve(document.link_href("icon"))


def well_known_favicon(base_url: str) -> str:
    parsed = urlparse(base_url)
    return urlunparse((parsed.scheme, parsed.netloc, "/favicon.ico", "", "", ""))


def resolve_favicon(
    document: HtmlDocument,
    base_url: str,
    options: ScrapingOptions,
    prober: Prober = head_status,
) -> Optional[str]:
    """Find the page icon.

    A declared icon is returned without checking that it exists; otherwise
    ``/favicon.ico`` on the page origin is probed and kept only on a 200.
    """
    icon = declared_icon(document)
    if icon:
        return icon

    candidate = well_known_favicon(base_url)
    try:
        status = prober(candidate, options)
    except SummalyError as exc:
        logger.debug(
            event="favicon_probe_failed",
            operation="favicon.probe",
            url=candidate,
            error_type=exc.__class__.__name__,
        )
        return None

    if status == 200:
        return candidate
    logger.debug(
        event="favicon_probe_missing",
        operation="favicon.probe",
        url=candidate,
        status=status,
    )
    return None
