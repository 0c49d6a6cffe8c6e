import json

import pytest

from summaly.models.oembed import parse_oembed
from summaly.services.document import HtmlDocument
from summaly.services.exceptions import OEmbedValidationError, TransportError
from summaly.services.oembed import (
    DEFAULT_PLAYER_PERMISSIONS,
    SAFE_PERMISSIONS,
    discover_oembed,
    extract_embed,
    fallback_player,
    permissions_from_iframe,
    resolve_oembed,
    single_iframe,
)

import html_fixtures as fx

HOST = "http://localhost:3060/"


class StaticFetcher:
    """Serves oEmbed bodies by URL, raising TransportError for unknown ones."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def __call__(self, url, options):
        self.calls.append(url)
        if url not in self.routes:
            raise TransportError("404 Not Found", url=url, status=404, reason="Not Found")
        body = self.routes[url]
        return body if isinstance(body, str) else json.dumps(body)


def _resolve(payload, options, html=None):
    fetcher = StaticFetcher({HOST + "oembed.json": payload})
    document = HtmlDocument(html or fx.oembed_page(), HOST)
    return resolve_oembed(document, options, fetcher)


def test_basic_properties(options):
    result = _resolve(fx.OEMBED["oembed.json"], options)

    assert result.player.url == "https://example.com/"
    assert result.player.width == 500
    assert result.player.height == 300
    assert result.player.allow == ()


def test_video_type(options):
    result = _resolve(fx.OEMBED["oembed-video.json"], options)
    assert result.player.url == "https://example.com/"
    assert (result.player.width, result.player.height) == (500, 300)


def test_height_is_clamped(options):
    result = _resolve(fx.OEMBED["oembed-too-tall.json"], options)
    assert result.player.height == 1024
    assert result.player.width is None


def test_script_child_is_allowed(options):
    result = _resolve(fx.OEMBED["oembed-iframe-child.json"], options)
    assert result.player.url == "https://example.com/"


def test_allow_fullscreen(options):
    result = _resolve(fx.OEMBED["oembed-allow-fullscreen.json"], options)
    assert result.player.allow == ("fullscreen",)


def test_legacy_allowfullscreen_attribute(options):
    result = _resolve(fx.OEMBED["oembed-allow-fullscreen-legacy.json"], options)
    assert result.player.allow == ("fullscreen",)


def test_safelisted_permissions_in_safelist_order(options):
    result = _resolve(fx.OEMBED["oembed-allow-safelisted-permissions.json"], options)
    assert result.player.allow == SAFE_PERMISSIONS


def test_rare_permissions_are_dropped(options):
    result = _resolve(fx.OEMBED["oembed-ignore-rare-permissions.json"], options)
    assert result.player.allow == ("autoplay",)


def test_percentage_width(options):
    result = _resolve(fx.OEMBED["oembed-percentage-width.json"], options)
    assert result.player.width is None
    assert result.player.height == 300


@pytest.mark.parametrize(
    "name",
    sorted(name for name in fx.INVALID_OEMBED if name != "oembed-photo.json"),
)
def test_invalid_documents_are_rejected(name, options):
    assert _resolve(fx.INVALID_OEMBED[name], options) is None


def test_photo_only_contributes_a_thumbnail(options):
    result = _resolve(fx.INVALID_OEMBED["oembed-photo.json"], options)
    assert result.player.url is None
    assert result.thumbnail == "https://example.com/example.avif"


def test_relative_oembed_href(options):
    fetcher = StaticFetcher({HOST + "oembed.json": fx.OEMBED["oembed.json"]})
    document = HtmlDocument(fx.oembed_page("oembed.json"), HOST)

    result = resolve_oembed(document, options, fetcher)

    assert fetcher.calls == [HOST + "oembed.json"]
    assert result.player.url == "https://example.com/"


def test_nonexistent_oembed_path(options):
    fetcher = StaticFetcher({})
    document = HtmlDocument(fx.oembed_page(HOST + "oembe.json"), HOST)
    assert resolve_oembed(document, options, fetcher) is None


def test_wrong_port_is_rejected_without_fetching(options):
    fetcher = StaticFetcher({})
    document = HtmlDocument(fx.oembed_page("http://localhost:+3060/oembed.json"), HOST)

    assert resolve_oembed(document, options, fetcher) is None
    assert fetcher.calls == []


def test_non_json_body_is_rejected(options):
    assert _resolve("<html>not json</html>", options) is None


def test_page_without_oembed_link(options):
    fetcher = StaticFetcher({})
    assert resolve_oembed(HtmlDocument(fx.BASIC, HOST), options, fetcher) is None
    assert fetcher.calls == []


def test_xml_oembed_links_are_skipped():
    document = HtmlDocument(
        '<link type="text/xml+oembed" href="/oembed.xml">'
        '<link type="application/json+oembed" href="/oembed.json">',
        HOST,
    )
    assert discover_oembed(document) == HOST + "oembed.json"


@pytest.mark.parametrize(
    "raw, stage",
    [
        ([], "envelope"),
        ({"type": "rich"}, "envelope"),
        ({"version": "1.0", "type": "link"}, "envelope"),
        ({"version": "1.0", "type": "rich"}, "content"),
        ({"version": "1.0", "type": "photo"}, "content"),
    ],
)
def test_parse_oembed_stages(raw, stage):
    with pytest.raises(OEmbedValidationError) as excinfo:
        parse_oembed(raw)
    assert excinfo.value.stage == stage


def test_iframe_dimensions_used_when_payload_has_none():
    payload = parse_oembed(
        {
            "version": "1.0",
            "type": "rich",
            "html": "<iframe src='https://example.com/' width='320' height='180'></iframe>",
        }
    )
    player = extract_embed(payload).player
    assert (player.width, player.height) == (320, 180)


def test_numeric_string_dimensions_are_accepted():
    payload = parse_oembed(
        {"version": "1.0", "type": "rich", "html": fx.IFRAME, "width": "640", "height": "360"}
    )
    player = extract_embed(payload).player
    assert (player.width, player.height) == (640, 360)


def test_boolean_height_is_rejected():
    payload = parse_oembed({"version": "1.0", "type": "rich", "html": fx.IFRAME, "height": True})
    with pytest.raises(OEmbedValidationError):
        extract_embed(payload)


def test_permission_extraction_is_idempotent():
    iframe = single_iframe(
        "<iframe src='https://example.com/' allow='web-share; autoplay camera autoplay'></iframe>"
    )
    first = permissions_from_iframe(iframe)
    assert first == ("autoplay", "web-share")
    assert permissions_from_iframe(iframe) == first


def test_pleroma_video_uses_twitter_player():
    player = fallback_player(HtmlDocument(fx.PLAYER_PLEROMA_VIDEO, HOST))
    assert player.url == "https://example.com/embedurl"
    assert (player.width, player.height) == (480, 480)
    assert player.allow == DEFAULT_PLAYER_PERMISSIONS


def test_peertube_video_uses_open_graph_player():
    player = fallback_player(HtmlDocument(fx.PLAYER_PEERTUBE_VIDEO, HOST))
    assert player.url == "https://example.com/embedurl"
    assert (player.width, player.height) == (640, 480)
    assert list(player.allow) == ["autoplay", "encrypted-media", "fullscreen"]


def test_pleroma_image_has_no_player():
    assert fallback_player(HtmlDocument(fx.PLAYER_PLEROMA_IMAGE, HOST)).url is None


def test_raw_video_stream_is_not_a_player():
    html = fx.page(
        '<meta property="og:video:url" content="https://example.com/video.mp4">'
        '<meta property="og:video:type" content="video/mp4">'
    )
    assert fallback_player(HtmlDocument(html, HOST)).url is None


@pytest.mark.parametrize(
    "height",
    ["9" * 400, int("9" * 400)],
    ids=["string", "integer"],
)
def test_oversized_height_is_rejected(height, options):
    payload = {"version": "1.0", "type": "rich", "html": fx.IFRAME, "height": height}
    assert _resolve(payload, options) is None


def test_oversized_width_is_rejected(options):
    payload = {
        "version": "1.0",
        "type": "rich",
        "html": fx.IFRAME,
        "width": int("9" * 400),
        "height": 300,
    }
    assert _resolve(payload, options) is None


def test_oversized_open_graph_dimensions_are_dropped():
    html = fx.page(
        '<meta property="og:video:url" content="https://example.com/embedurl">'
        f'<meta property="og:video:width" content="{"9" * 400}">'
        '<meta property="og:video:height" content="360">'
    )
    player = fallback_player(HtmlDocument(html, HOST))
    assert player.url == "https://example.com/embedurl"
    assert (player.width, player.height) == (None, 360)


def test_nested_iframe_is_rejected():
    with pytest.raises(OEmbedValidationError) as excinfo:
        single_iframe(
            "<iframe src='https://example.com/'><iframe src='https://evil.example/'></iframe></iframe>"
        )
    assert excinfo.value.reason == "nested iframe"
