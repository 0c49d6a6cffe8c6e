from __future__ import annotations

from typing import NamedTuple, Optional

from summaly.services.document import HtmlDocument, resolve_url

ACTIVITY_JSON = "application/activity+json"


class FederationIdentity(NamedTuple):
    activity_pub: Optional[str]
    fediverse_creator: Optional[str]


def extract_federation(document: HtmlDocument, page_url: str) -> FederationIdentity:
    href = document.link_href("alternate", ACTIVITY_JSON)
    creator = (document.meta("fediverse:creator") or "").strip() or None
    return FederationIdentity(
        activity_pub=resolve_url(page_url, href),
        fediverse_creator=creator,
    )
