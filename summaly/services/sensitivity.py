from __future__ import annotations

import re
from typing import Mapping, Optional

from summaly.services.document import HtmlDocument

# Restricted To Adults label, e.g. RTA-5042-1996-1400-1577-RTA.
_RTA_LABEL = re.compile(r"^RTA-[\w-]+-RTA$", re.IGNORECASE)


def _is_adult_rating(value: Optional[str]) -> bool:
    if not value:
        return False
    value = value.strip()
    return value.lower() == "adult" or bool(_RTA_LABEL.match(value))


def _header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    wanted = name.lower()
    for key, candidate in headers.items():
        if key.lower() == wanted:
            return candidate
    return None


def is_sensitive(
    document: HtmlDocument, response_headers: Optional[Mapping[str, str]] = None
) -> bool:
    """True when any rating signal marks the page as adult content."""
    if (document.meta("mixi:content-rating") or "").strip() == "1":
        return True
    if _is_adult_rating(document.meta("rating")):
        return True
    return _is_adult_rating(_header(response_headers, "rating"))
