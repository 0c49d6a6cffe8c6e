from __future__ import annotations


class SummalyError(Exception):
    """Base class for summarization pipeline errors."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class TransportError(SummalyError):
    """The target resource answered with a non-2xx status or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message, url=url)
        self.status = status
        self.reason = reason


class FetchTimeout(SummalyError, TimeoutError):
    """A fetch phase exceeded its response or operation budget."""


class SizeLimitExceeded(SummalyError):
    """Declared or received body size is over the configured limit."""


class OEmbedValidationError(SummalyError):
    """An oEmbed resource failed one of the embed safety checks.

    Raised and recovered inside the oEmbed resolver; never reaches callers.
    """

    def __init__(self, stage: str, reason: str, *, url: str | None = None) -> None:
        super().__init__(f"{stage}: {reason}", url=url)
        self.stage = stage
        self.reason = reason


__all__ = [
    "SummalyError",
    "TransportError",
    "FetchTimeout",
    "SizeLimitExceeded",
    "OEmbedValidationError",
]
