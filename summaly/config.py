from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

# Mimics an iPad Safari browser; many sites serve richer metadata to it.
DEFAULT_BOT_UA = (
    "Mozilla/5.0 (iPad; CPU OS 16_7_10 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1,gzip(gfe)"
)


class SummalySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SUMMALY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ENV: str = "development"
    USER_AGENT: str = DEFAULT_BOT_UA
    RESPONSE_TIMEOUT_SECONDS: float = 20.0
    OPERATION_TIMEOUT_SECONDS: float = 60.0
    CONTENT_LENGTH_LIMIT: int = 10 * 1024 * 1024
    CONTENT_LENGTH_REQUIRED: bool = False
    FOLLOW_REDIRECTS: bool = True
    RATE_LIMIT: str = "60 per minute"
    RATE_LIMIT_ENABLED: bool = True
    RATELIMIT_STORAGE_URI: str = "memory://"
    CACHE_TYPE: str = "SimpleCache"
    CACHE_DEFAULT_TIMEOUT: int = 300
    CACHE_REDIS_URL: str | None = None
    CACHE_DIR: str | None = None


settings = SummalySettings()


@dataclass(frozen=True)
class ScrapingOptions:
    """Per-request knobs for fetching and summarizing a page.

    ``lang`` only affects the outbound ``Accept-Language`` header; parsing
    never looks at it. Timeouts are in seconds.
    """

    lang: str | None = None
    user_agent: str | None = None
    response_timeout: float | None = None
    operation_timeout: float | None = None
    content_length_limit: int | None = None
    content_length_required: bool = False
    follow_redirects: bool = True

    @classmethod
    def from_settings(cls, source: SummalySettings | None = None) -> ScrapingOptions:
        """Create options populated from the process settings."""
        source = source or settings
        return cls(
            user_agent=source.USER_AGENT,
            response_timeout=source.RESPONSE_TIMEOUT_SECONDS,
            operation_timeout=source.OPERATION_TIMEOUT_SECONDS,
            content_length_limit=source.CONTENT_LENGTH_LIMIT,
            content_length_required=source.CONTENT_LENGTH_REQUIRED,
            follow_redirects=source.FOLLOW_REDIRECTS,
        )

    def merged(self, **overrides: Any) -> ScrapingOptions:
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    @property
    def effective_user_agent(self) -> str:
        return self.user_agent or settings.USER_AGENT

    @property
    def effective_response_timeout(self) -> float:
        return self.response_timeout or self.operation_timeout or settings.OPERATION_TIMEOUT_SECONDS

    @property
    def effective_operation_timeout(self) -> float:
        return self.operation_timeout or settings.OPERATION_TIMEOUT_SECONDS

    @property
    def effective_content_length_limit(self) -> int:
        if self.content_length_limit is None:
            return settings.CONTENT_LENGTH_LIMIT
        return self.content_length_limit
