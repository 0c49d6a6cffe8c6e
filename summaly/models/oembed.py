"""Typed oEmbed payloads.

Remote oEmbed JSON is untrusted: :func:`parse_oembed` is the only way to
turn a decoded JSON value into one of these records.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from summaly.services.exceptions import OEmbedValidationError

SUPPORTED_VERSION = "1.0"
EMBEDDABLE_TYPES = ("photo", "video", "rich")


class _OEmbedBase(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    version: Literal["1.0"]
    # Dimensions arrive as numbers, numeric strings or percentages; the
    # resolver interprets them.
    width: Any = None
    height: Any = None
    thumbnail_url: Optional[str] = None
    title: Optional[str] = None
    provider_name: Optional[str] = None

    @field_validator("thumbnail_url", "title", "provider_name", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


class PhotoOEmbed(_OEmbedBase):
    type: Literal["photo"]
    url: str


class VideoOEmbed(_OEmbedBase):
    type: Literal["video"]
    html: str


class RichOEmbed(_OEmbedBase):
    type: Literal["rich"]
    html: str


class LinkOEmbed(_OEmbedBase):
    type: Literal["link"]


OEmbedPayload = Annotated[
    Union[PhotoOEmbed, VideoOEmbed, RichOEmbed, LinkOEmbed],
    Field(discriminator="type"),
]

_PAYLOAD_ADAPTER: TypeAdapter[Any] = TypeAdapter(OEmbedPayload)


def parse_oembed(raw: Any) -> Union[PhotoOEmbed, VideoOEmbed, RichOEmbed]:
    """Validate a decoded oEmbed document.

    Raises :class:`OEmbedValidationError` with stage ``envelope`` for a wrong
    version or unusable type, and ``content`` when the type-specific fields
    are missing or malformed.
    """
    if not isinstance(raw, dict):
        raise OEmbedValidationError("envelope", "payload is not a JSON object")

    version = raw.get("version")
    if version != SUPPORTED_VERSION:
        raise OEmbedValidationError("envelope", f"unsupported version {version!r}")

    kind = raw.get("type")
    if kind not in EMBEDDABLE_TYPES:
        raise OEmbedValidationError("envelope", f"unsupported type {kind!r}")

    try:
        return _PAYLOAD_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        fields = ",".join(
            ".".join(str(part) for part in error["loc"]) for error in exc.errors()
        )
        raise OEmbedValidationError("content", f"invalid fields: {fields}") from exc
