from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable


@dataclass(frozen=True)
class Player:
    url: str | None = None
    width: int | None = None
    height: int | None = None
    allow: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.url is None:
            # Dimensions and permissions mean nothing without an embed.
            object.__setattr__(self, "width", None)
            object.__setattr__(self, "height", None)
            object.__setattr__(self, "allow", ())
        else:
            object.__setattr__(self, "allow", _ordered_unique(self.allow))

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "allow": list(self.allow),
        }


EMPTY_PLAYER = Player()


def _ordered_unique(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return tuple(ordered)


@dataclass(frozen=True)
class Summary:
    title: str | None = None
    icon: str | None = None
    description: str | None = None
    thumbnail: str | None = None
    sitename: str | None = None
    sensitive: bool = False
    player: Player = EMPTY_PLAYER
    activity_pub: str | None = None
    fediverse_creator: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire representation, keyed the way API consumers expect."""
        payload: dict[str, Any] = {
            "title": self.title,
            "icon": self.icon,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "sitename": self.sitename,
            "sensitive": self.sensitive,
            "player": self.player.to_dict(),
            "activityPub": self.activity_pub,
            "fediverseCreator": self.fediverse_creator,
        }
        if self.url is not None:
            payload["url"] = self.url
        return payload
