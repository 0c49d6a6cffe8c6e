"""oEmbed discovery and embed safety checks.

A page may advertise an oEmbed resource with
``<link type="application/json+oembed">``. The resource is
untrusted, so it moves through a fixed sequence of stages::

    discover -> fetch -> envelope -> content -> extract

Every stage either hands a value to the next one or raises
:class:`OEmbedValidationError`. :func:`resolve_oembed` turns any such error
into ``None`` after logging the stage and reason, so a bad embed never fails
the summary. When it yields no player, :func:`fallback_player` reads
Open Graph and Twitter Card player tags instead.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union
from urllib.parse import urlparse

import structlog

from summaly.config import ScrapingOptions
from summaly.models.oembed import PhotoOEmbed, RichOEmbed, VideoOEmbed, parse_oembed
from summaly.models.summary import EMPTY_PLAYER, Player
from summaly.services import fetch as fetch_service
from summaly.services.document import Element, HtmlDocument, HtmlFragment, resolve_url
from summaly.services.exceptions import OEmbedValidationError, SummalyError

logger = structlog.get_logger(__name__)

OEMBED_JSON = "application/json+oembed"

MAX_PLAYER_HEIGHT = 1024

# Output order of permission tokens follows this tuple.
SAFE_PERMISSIONS: tuple[str, ...] = (
    "autoplay",
    "clipboard-write",
    "encrypted-media",
    "fullscreen",
    "picture-in-picture",
    "web-share",
)

# Granted to Open Graph and Twitter Card players, which carry no allow list.
DEFAULT_PLAYER_PERMISSIONS: tuple[str, ...] = ("autoplay", "encrypted-media", "fullscreen")

# Fetches the oEmbed resource body, raising SummalyError on failure.
OEmbedFetcher = Callable[[str, ScrapingOptions], str]

_NUMERIC = re.compile(r"^\s*\d+(?:\.\d+)?\s*$")
_PERCENTAGE = re.compile(r"^\s*\d+(?:\.\d+)?\s*%\s*$")
_PERMISSION_SEPARATOR = re.compile(r"[;\s]+")


@dataclass(frozen=True)
class OEmbedResult:
    """Outcome of an accepted oEmbed resource.

    ``player`` is empty for photo payloads, which only contribute a
    thumbnail candidate.
    """

    player: Player = EMPTY_PLAYER
    thumbnail: Optional[str] = None


def default_fetcher(url: str, options: ScrapingOptions) -> str:
    return fetch_service.get_text(url, options)


def discover_oembed(document: HtmlDocument) -> Optional[str]:
    """Absolute URL of the first JSON oEmbed link, or ``None`` when there is none.

    XML oEmbed links are ignored. A JSON link whose href cannot be turned
    into an http(s) URL is rejected.
    """
    href = document.link_href(type_=OEMBED_JSON)
    if href is None:
        return None
    resolved = document.resolve(href)
    if resolved is None:
        raise OEmbedValidationError("discover", f"unusable href {href!r}", url=document.url)
    return resolved


def fetch_oembed(url: str, options: ScrapingOptions, fetcher: OEmbedFetcher) -> Any:
    try:
        body = fetcher(url, options)
    except SummalyError as exc:
        raise OEmbedValidationError("fetch", str(exc), url=url) from exc
    try:
        return json.loads(body)
    except ValueError as exc:
        raise OEmbedValidationError("fetch", "body is not JSON", url=url) from exc


def _as_number(value: Any) -> Optional[float]:
    """Finite non-negative number from a payload or attribute value."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not _NUMERIC.match(value):
            return None
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def _is_percentage(value: Any) -> bool:
    return isinstance(value, str) and bool(_PERCENTAGE.match(value))


def _pick(payload_value: Any, iframe: Element, attribute: str) -> Any:
    if payload_value is not None:
        return payload_value
    return iframe.attr(attribute)


def embed_height(payload_value: Any, iframe: Element) -> int:
    raw = _pick(payload_value, iframe, "height")
    if raw is None:
        raise OEmbedValidationError("content", "height is missing")
    height = _as_number(raw)
    if height is None:
        raise OEmbedValidationError("content", f"height {raw!r} is not numeric")
    return min(int(height), MAX_PLAYER_HEIGHT)


def embed_width(payload_value: Any, iframe: Element) -> Optional[int]:
    raw = _pick(payload_value, iframe, "width")
    if raw is None or _is_percentage(raw):
        return None
    width = _as_number(raw)
    if width is None:
        raise OEmbedValidationError("content", f"width {raw!r} is not numeric")
    return int(width)


def permissions_from_iframe(iframe: Element) -> tuple[str, ...]:
    """Safelisted ``allow`` tokens of ``iframe`` in safelist order."""
    requested = {
        token
        for token in _PERMISSION_SEPARATOR.split((iframe.attr("allow") or "").lower())
        if token
    }
    if iframe.has_attr("allowfullscreen"):
        requested.add("fullscreen")
    return tuple(token for token in SAFE_PERMISSIONS if token in requested)


def single_iframe(html: str) -> Element:
    """The one top-level ``<iframe>`` of an embed snippet.

    Anything else at the top level, or an iframe nested inside it, is a
    rejection.
    """
    fragment = HtmlFragment(html)
    if fragment.stray_text():
        raise OEmbedValidationError("content", "text outside the iframe")
    children = fragment.children()
    if len(children) != 1:
        raise OEmbedValidationError("content", f"expected one element, found {len(children)}")
    iframe = children[0]
    if iframe.name != "iframe":
        raise OEmbedValidationError("content", f"top-level element is <{iframe.name}>")
    # Newer html.parser releases keep iframe content as raw text.
    if iframe.descendants("iframe") or "<iframe" in iframe.text().lower():
        raise OEmbedValidationError("content", "nested iframe")
    return iframe


def _https_src(iframe: Element) -> str:
    src = (iframe.attr("src") or "").strip()
    try:
        parsed = urlparse(src)
    except ValueError as exc:
        raise OEmbedValidationError("content", "iframe src is not a URL") from exc
    if parsed.scheme != "https" or not parsed.netloc:
        raise OEmbedValidationError("content", f"iframe src {src!r} is not https")
    return src


def extract_embed(payload: Union[PhotoOEmbed, VideoOEmbed, RichOEmbed]) -> OEmbedResult:
    if isinstance(payload, PhotoOEmbed):
        thumbnail = resolve_url(payload.url, payload.url)
        if thumbnail is None:
            raise OEmbedValidationError("content", "photo url is not absolute http(s)")
        return OEmbedResult(thumbnail=thumbnail)

    iframe = single_iframe(payload.html)
    src = _https_src(iframe)
    height = embed_height(payload.height, iframe)
    width = embed_width(payload.width, iframe)
    return OEmbedResult(
        player=Player(
            url=src,
            width=width,
            height=height,
            allow=permissions_from_iframe(iframe),
        )
    )


def resolve_oembed(
    document: HtmlDocument,
    options: ScrapingOptions,
    fetcher: OEmbedFetcher = default_fetcher,
) -> Optional[OEmbedResult]:
    """Run the oEmbed stages for ``document``.

    Returns ``None`` when the page advertises no oEmbed resource or when
    any stage rejects it.
    """
    oembed_url: Optional[str] = None
    try:
        oembed_url = discover_oembed(document)
        if oembed_url is None:
            return None
        raw = fetch_oembed(oembed_url, options, fetcher)
        result = extract_embed(parse_oembed(raw))
    except OEmbedValidationError as exc:
        logger.info(
            event="oembed_rejected",
            operation="oembed.resolve",
            url=document.url,
            oembed_url=oembed_url,
            stage=exc.stage,
            reason=exc.reason,
        )
        return None

    logger.debug(
        event="oembed_accepted",
        operation="oembed.resolve",
        url=document.url,
        oembed_url=oembed_url,
        player_url=result.player.url,
    )
    return result


def _dimension(value: Optional[str]) -> Optional[int]:
    number = _as_number(value)
    return int(number) if number is not None else None


def open_graph_player(document: HtmlDocument) -> Player:
    video_type = (document.meta("og:video:type") or "").strip().lower()
    # A declared media type other than text/html is a raw stream, not an embed.
    if video_type and video_type != "text/html":
        return EMPTY_PLAYER
    src = document.resolve(
        document.meta("og:video:secure_url") or document.meta("og:video:url")
    )
    if src is None:
        return EMPTY_PLAYER
    return Player(
        url=src,
        width=_dimension(document.meta("og:video:width")),
        height=_dimension(document.meta("og:video:height")),
        allow=DEFAULT_PLAYER_PERMISSIONS,
    )


def twitter_player(document: HtmlDocument) -> Player:
    if (document.meta("twitter:card") or "").strip().lower() != "player":
        return EMPTY_PLAYER
    src = document.resolve(document.meta("twitter:player"))
    if src is None:
        return EMPTY_PLAYER
    return Player(
        url=src,
        width=_dimension(document.meta("twitter:player:width")),
        height=_dimension(document.meta("twitter:player:height")),
        allow=DEFAULT_PLAYER_PERMISSIONS,
    )


def fallback_player(document: HtmlDocument) -> Player:
    """Player from Open Graph video tags, then the Twitter Card player."""
    player = open_graph_player(document)
    if player.url is not None:
        return player
    return twitter_player(document)
