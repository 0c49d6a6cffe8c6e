import pytest

from summaly.services.document import HtmlDocument
from summaly.services.sensitivity import is_sensitive

import html_fixtures as fx


@pytest.mark.parametrize(
    "html",
    [fx.MIXI_SENSITIVE, fx.META_ADULT_SENSITIVE, fx.META_RTA_SENSITIVE],
)
def test_rating_signals_mark_page_sensitive(html):
    assert is_sensitive(HtmlDocument(html, "https://example.com/")) is True


def test_plain_page_is_not_sensitive():
    assert is_sensitive(HtmlDocument(fx.BASIC, "https://example.com/")) is False


def test_rating_header_marks_page_sensitive():
    document = HtmlDocument(fx.BASIC, "https://example.com/")
    assert is_sensitive(document, {"Rating": "RTA-5042-1996-1400-1577-RTA"}) is True
    assert is_sensitive(document, {"rating": "adult"}) is True


def test_other_rating_values_are_not_sensitive():
    document = HtmlDocument(
        fx.page('<meta name="rating" content="general">'), "https://example.com/"
    )
    assert is_sensitive(document, {"rating": "general"}) is False


def test_mixi_rating_other_than_one_is_not_sensitive():
    document = HtmlDocument(
        fx.page('<meta property="mixi:content-rating" content="0">'),
        "https://example.com/",
    )
    assert is_sensitive(document) is False
