"""Compose the extractors into a :class:`Summary`.

:func:`summarize_general` is pure apart from the two injected network
collaborators (favicon prober and oEmbed fetcher), so identical inputs
always produce an identical summary. :func:`summaly` is the public entry
point that adds redirect resolution and plugin dispatch on top.
"""

from __future__ import annotations

import dataclasses
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Mapping, Optional

import structlog

from summaly.config import ScrapingOptions
from summaly.models.summary import Summary
from summaly.services import fetch as fetch_service
from summaly.services.document import HtmlDocument
from summaly.services.exceptions import SummalyError
from summaly.services.favicon import Prober, head_status, resolve_favicon
from summaly.services.federation import extract_federation
from summaly.services.metadata import extract_metadata
from summaly.services.oembed import (
    OEmbedFetcher,
    default_fetcher,
    fallback_player,
    resolve_oembed,
)
from summaly.services.plugins import PluginRegistry, SummalyPlugin
from summaly.services.sensitivity import is_sensitive

logger = structlog.get_logger(__name__)


def summarize_general(
    url: str,
    html: str,
    response_headers: Optional[Mapping[str, str]] = None,
    options: Optional[ScrapingOptions] = None,
    *,
    prober: Prober = head_status,
    oembed_fetcher: OEmbedFetcher = default_fetcher,
) -> Summary:
    options = options or ScrapingOptions.from_settings()
    document = HtmlDocument(html, url)

    partial = extract_metadata(document)
    sensitive = is_sensitive(document, response_headers)
    federation = extract_federation(document, url)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="summaly") as pool:
        icon_future = pool.submit(resolve_favicon, document, url, options, prober)
        oembed_future = pool.submit(resolve_oembed, document, options, oembed_fetcher)
        icon = icon_future.result()
        oembed = oembed_future.result()

    if oembed is not None and oembed.player.url is not None:
        player = oembed.player
    else:
        player = fallback_player(document)

    thumbnail = partial.thumbnail
    if thumbnail is None and oembed is not None:
        thumbnail = oembed.thumbnail

    return Summary(
        title=partial.title,
        icon=icon,
        description=partial.description,
        thumbnail=thumbnail,
        sitename=partial.sitename,
        sensitive=sensitive,
        player=player,
        activity_pub=federation.activity_pub,
        fediverse_creator=federation.fediverse_creator,
    )


def general(url: str, options: Optional[ScrapingOptions] = None) -> Summary:
    """Fetch ``url`` and summarize it from its own markup."""
    options = options or ScrapingOptions.from_settings()
    page = fetch_service.scraping(url, options)
    return summarize_general(page.url, page.html, page.headers, options)


def _resolve_redirects(url: str, options: ScrapingOptions) -> str:
    try:
        return fetch_service.head(url, options).url or url
    except SummalyError as exc:
        logger.debug(
            event="redirect_resolution_failed",
            operation="summaly.redirects",
            url=url,
            error_type=exc.__class__.__name__,
        )
        return url


def summaly(
    url: str,
    options: Optional[ScrapingOptions] = None,
    plugins: Iterable[SummalyPlugin] = (),
) -> Summary:
    """Summarize ``url``.

    With ``follow_redirects`` set the URL is first resolved by a HEAD
    request; a failed HEAD keeps the original URL. The first plugin that
    accepts the resolved URL produces the summary, otherwise the generic
    page summarizer does. The returned summary carries the resolved URL.

    Raises :class:`SummalyError` (or a subclass) when the page cannot be
    fetched or a plugin gives up.
    """
    options = options or ScrapingOptions.from_settings()
    registry = plugins if isinstance(plugins, PluginRegistry) else PluginRegistry(plugins)
    started = time.monotonic()

    actual_url = _resolve_redirects(url, options) if options.follow_redirects else url

    plugin = registry.match(actual_url)
    if plugin is not None:
        logger.info(
            event="plugin_selected",
            operation="summaly.dispatch",
            url=actual_url,
            plugin=plugin.name,
        )
        summary = plugin.summarize(actual_url, options)
    else:
        summary = general(actual_url, options)

    if summary is None:
        raise SummalyError("failed summarize", url=actual_url)

    logger.info(
        event="summary_complete",
        operation="summaly.summarize",
        url=actual_url,
        plugin=plugin.name if plugin is not None else None,
        has_player=summary.player.url is not None,
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )
    return dataclasses.replace(summary, url=actual_url)
