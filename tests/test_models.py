import pytest
from pydantic import ValidationError

from summaly.config import ScrapingOptions, SummalySettings
from summaly.models.oembed import RichOEmbed, parse_oembed
from summaly.models.summary import EMPTY_PLAYER, Player, Summary
from summaly.utils.text_cleaner import clean_text, clip


def test_player_without_url_has_no_dimensions_or_permissions():
    player = Player(url=None, width=500, height=300, allow=("autoplay",))
    assert player == EMPTY_PLAYER
    assert player.allow == ()


def test_player_permissions_are_deduplicated_in_order():
    player = Player(url="https://example.com/", allow=("fullscreen", "autoplay", "fullscreen"))
    assert player.allow == ("fullscreen", "autoplay")


def test_summary_is_immutable():
    summary = Summary(title="x")
    with pytest.raises(AttributeError):
        summary.title = "y"


def test_parse_oembed_ignores_unknown_fields_and_bad_optional_types():
    payload = parse_oembed(
        {
            "version": "1.0",
            "type": "rich",
            "html": "<iframe></iframe>",
            "height": 10,
            "title": 42,
            "author_name": "someone",
        }
    )
    assert isinstance(payload, RichOEmbed)
    assert payload.title is None


def test_oembed_models_are_frozen():
    payload = parse_oembed({"version": "1.0", "type": "rich", "html": "<iframe></iframe>"})
    with pytest.raises(ValidationError):
        payload.html = "<script></script>"


def test_scraping_options_from_settings():
    settings = SummalySettings(
        USER_AGENT="Bot/2",
        RESPONSE_TIMEOUT_SECONDS=3,
        OPERATION_TIMEOUT_SECONDS=9,
        CONTENT_LENGTH_LIMIT=100,
    )
    options = ScrapingOptions.from_settings(settings)

    assert options.effective_user_agent == "Bot/2"
    assert options.effective_response_timeout == 3
    assert options.effective_operation_timeout == 9
    assert options.effective_content_length_limit == 100


def test_merged_skips_missing_overrides():
    options = ScrapingOptions(lang="en", operation_timeout=5)
    merged = options.merged(lang=None, operation_timeout=7)

    assert merged.lang == "en"
    assert merged.operation_timeout == 7
    assert options.operation_timeout == 5


def test_response_timeout_defaults_to_operation_timeout():
    assert ScrapingOptions(operation_timeout=4).effective_response_timeout == 4


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("SUMMALY_CONTENT_LENGTH_REQUIRED", "true")
    monkeypatch.setenv("SUMMALY_RATE_LIMIT", "5 per second")

    settings = SummalySettings()

    assert settings.CONTENT_LENGTH_REQUIRED is True
    assert settings.RATE_LIMIT == "5 per second"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("   ", None),
        ("a\u00a0b", "a b"),
        ("zero\u200bwidth", "zerowidth"),
        ("Fish &amp; Chips", "Fish &amp; Chips"),
    ],
)
def test_clean_text(raw, expected):
    assert clean_text(raw) == expected


def test_clip():
    assert clip("short", 10) == "short"
    assert clip("abcdefghij", 5) == "abcd…"
    assert clip(None, 5) is None
