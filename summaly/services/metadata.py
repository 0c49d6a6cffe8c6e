"""Title, description, thumbnail and site name resolution.

Each field is resolved by an ordered tuple of :class:`FieldStrategy`
objects; the first one that yields a non-empty value wins. The tuples are
the precedence order, so tests can assert on them directly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional
from urllib.parse import urlparse

import structlog

from summaly.services.document import HtmlDocument
from summaly.utils.text_cleaner import clean_text, clip

logger = structlog.get_logger(__name__)

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 300

ExtractFn = Callable[[HtmlDocument], Optional[str]]


@dataclass(frozen=True)
class FieldStrategy:
    name: str
    extractor: ExtractFn

    def run(self, document: HtmlDocument) -> Optional[str]:
        value = self.extractor(document)
        if value is None:
            return None
        value = value.strip()
        return value or None


def meta_strategy(key: str) -> FieldStrategy:
    return FieldStrategy(f"meta:{key}", lambda document: document.meta(key))


def link_strategy(rel: str) -> FieldStrategy:
    return FieldStrategy(f"link:{rel}", lambda document: document.link_href(rel))


def _first_paragraph(document: HtmlDocument) -> Optional[str]:
    for paragraph in document.select("body p"):
        text = paragraph.text()
        if text:
            return text
    return None


TITLE_STRATEGIES: tuple[FieldStrategy, ...] = (
    meta_strategy("og:title"),
    meta_strategy("twitter:title"),
    FieldStrategy("html:title", HtmlDocument.title),
)

DESCRIPTION_STRATEGIES: tuple[FieldStrategy, ...] = (
    meta_strategy("og:description"),
    meta_strategy("twitter:description"),
    meta_strategy("description"),
    FieldStrategy("html:first_paragraph", _first_paragraph),
)

THUMBNAIL_STRATEGIES: tuple[FieldStrategy, ...] = (
    meta_strategy("og:image"),
    meta_strategy("og:image:url"),
    meta_strategy("og:image:secure_url"),
    meta_strategy("twitter:image"),
    meta_strategy("twitter:image:src"),
    link_strategy("image_src"),
    link_strategy("apple-touch-icon"),
    link_strategy("apple-touch-icon-precomposed"),
)

SITENAME_STRATEGIES: tuple[FieldStrategy, ...] = (
    meta_strategy("og:site_name"),
    meta_strategy("application-name"),
)


def first_match(
    strategies: Iterable[FieldStrategy], document: HtmlDocument
) -> tuple[Optional[str], Optional[str]]:
    """Return ``(value, strategy_name)`` for the first strategy with a value."""
    for strategy in strategies:
        value = strategy.run(document)
        if value is not None:
            return value, strategy.name
    return None, None


_TITLE_SEPARATORS = r"[-|:・–—]"


def cleanup_title(title: Optional[str], site_name: Optional[str]) -> Optional[str]:
    """Strip a trailing ``<separator> <site name>`` from ``title``."""
    if title is None:
        return None
    title = title.strip()
    if not site_name:
        return title
    site_name = site_name.strip()
    if not site_name:
        return title
    pattern = re.compile(rf"^(.+?)\s*{_TITLE_SEPARATORS}\s*{re.escape(site_name)}$")
    match = pattern.match(title)
    if match:
        return match.group(1).strip()
    return title


@dataclass(frozen=True)
class PartialSummary:
    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    sitename: Optional[str] = None


def _host_of(url: str) -> Optional[str]:
    netloc = urlparse(url).netloc
    return netloc.rpartition("@")[2] or None


def extract_metadata(document: HtmlDocument) -> PartialSummary:
    declared_sitename, _ = first_match(SITENAME_STRATEGIES, document)
    declared_sitename = clean_text(declared_sitename)

    raw_title, title_source = first_match(TITLE_STRATEGIES, document)
    title = clip(cleanup_title(clean_text(raw_title), declared_sitename), TITLE_MAX_LENGTH)

    raw_description, description_source = first_match(DESCRIPTION_STRATEGIES, document)
    description = clip(clean_text(raw_description), DESCRIPTION_MAX_LENGTH)

    raw_thumbnail, thumbnail_source = first_match(THUMBNAIL_STRATEGIES, document)
    thumbnail = document.resolve(raw_thumbnail)

    logger.debug(
        event="metadata_resolved",
        operation="metadata.extract",
        url=document.url,
        title_source=title_source,
        description_source=description_source,
        thumbnail_source=thumbnail_source,
    )

    return PartialSummary(
        title=title,
        description=description,
        thumbnail=thumbnail,
        sitename=declared_sitename or _host_of(document.url),
    )
