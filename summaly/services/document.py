"""A small typed view over a parsed HTML tree.

Extractors only talk to :class:`HtmlDocument`; BeautifulSoup stays an
implementation detail of this module.
"""

from __future__ import annotations

import re
from typing import Iterator, Optional
from urllib.parse import urljoin, urlparse

import structlog
from bs4 import BeautifulSoup
from bs4.element import NavigableString, Tag

logger = structlog.get_logger(__name__)


def _initialise_soup(html: str, features: str = "lxml") -> BeautifulSoup:
    try:
        return BeautifulSoup(html, features)
    except Exception as exc:  # parser backends raise their own error types
        logger.debug(
            event="document_parser_fallback",
            operation="document.parse",
            features=features,
            error=str(exc),
        )
        return BeautifulSoup(html, "html.parser")


class Element:
    """Read-only wrapper around a single parsed tag."""

    __slots__ = ("_tag",)

    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    @property
    def name(self) -> str:
        return self._tag.name

    def attr(self, key: str) -> Optional[str]:
        value = self._tag.get(key)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def has_attr(self, key: str) -> bool:
        return self._tag.has_attr(key)

    def tokens(self, key: str) -> list[str]:
        """Return a whitespace-separated attribute (``rel``, ``class``) as lower-cased tokens."""
        value = self.attr(key)
        if not value:
            return []
        return [token.lower() for token in value.split()]

    def text(self) -> str:
        return self._tag.get_text(" ", strip=True)

    def descendants(self, name: str) -> list[Element]:
        return [Element(tag) for tag in self._tag.find_all(name)]


class HtmlDocument:
    """Parsed HTML document bound to the URL it was fetched from."""

    def __init__(self, html: str, url: str, *, features: str = "lxml") -> None:
        self.url = url
        self._soup = _initialise_soup(html or "", features)

    def select(self, selector: str) -> Iterator[Element]:
        for tag in self._soup.select(selector):
            yield Element(tag)

    def select_one(self, selector: str) -> Optional[Element]:
        tag = self._soup.select_one(selector)
        return Element(tag) if tag is not None else None

    def meta(self, key: str) -> Optional[str]:
        """Content of the first ``<meta>`` whose ``property`` or ``name`` equals ``key``.

        Open Graph uses ``property`` and Twitter Cards use ``name``, but pages
        mix them freely, so both are accepted and document order decides.
        """
        wanted = key.lower()
        for element in self.select("meta[content]"):
            for attribute in ("property", "name"):
                label = element.attr(attribute)
                if label is not None and label.strip().lower() == wanted:
                    return element.attr("content")
        return None

    def links(self, rel: Optional[str] = None, type_: Optional[str] = None) -> Iterator[Element]:
        """``<link>`` elements whose ``rel`` tokens contain ``rel`` and whose type matches."""
        wanted_rel = rel.lower() if rel else None
        wanted_type = type_.lower() if type_ else None
        for element in self.select("link[href]"):
            if wanted_rel is not None and wanted_rel not in element.tokens("rel"):
                continue
            if wanted_type is not None and (element.attr("type") or "").strip().lower() != wanted_type:
                continue
            yield element

    def link_href(self, rel: Optional[str] = None, type_: Optional[str] = None) -> Optional[str]:
        for element in self.links(rel, type_):
            href = (element.attr("href") or "").strip()
            if href:
                return href
        return None

    def title(self) -> Optional[str]:
        element = self.select_one("title")
        return element.text() if element is not None else None

    def resolve(self, href: Optional[str]) -> Optional[str]:
        """Resolve ``href`` against the document URL; unusable values give ``None``."""
        return resolve_url(self.url, href)


_HOST_PORT = re.compile(r"^(?:\[[^\]]*\]|[^:\[\]]*)(?::\d*)?$")


def resolve_url(base: str, href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    href = href.strip()
    if not href:
        return None
    try:
        resolved = urljoin(base, href)
        parsed = urlparse(resolved)
    except ValueError:
        return None
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return None
    if not _HOST_PORT.match(parsed.netloc.rpartition("@")[2]):
        return None
    return resolved


class HtmlFragment:
    """Parsed markup snippet, such as the ``html`` member of an oEmbed payload.

    Uses the stdlib parser so the snippet is not wrapped in ``<html><body>``
    and its top-level nodes stay top-level.
    """

    def __init__(self, html: str) -> None:
        self._soup = BeautifulSoup(html or "", "html.parser")

    def children(self) -> list[Element]:
        return [Element(node) for node in self._soup.contents if isinstance(node, Tag)]

    def stray_text(self) -> str:
        """Top-level text outside any element, comments excluded."""
        return "".join(
            str(node) for node in self._soup.contents if type(node) is NavigableString
        ).strip()
