"""Helpers to normalise text pulled out of untrusted documents."""

import re
from typing import Optional

_CONTROL_CHARS = {
    "\u200b",  # zero-width space
    "\u200c",  # zero-width non-joiner
    "\u200d",  # zero-width joiner
    "\ufeff",  # zero-width no-break space / BOM
}

_WHITESPACE = re.compile(r"\s+")

ELLIPSIS = "…"


def _strip_control_chars(text: str) -> str:
    for char in _CONTROL_CHARS:
        text = text.replace(char, "")
    return text


def clean_text(raw_text: Optional[str]) -> Optional[str]:
    """Collapse whitespace and drop invisible characters; empty input yields ``None``.

    Entities were already decoded by the parser, so the text is not unescaped again.
    """
    if raw_text is None:
        return None

    text = raw_text.replace("\u00a0", " ")
    text = _strip_control_chars(text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text or None


def clip(text: Optional[str], max_length: int) -> Optional[str]:
    """Clip ``text`` to ``max_length`` characters, ending with an ellipsis when cut."""
    if text is None:
        return None
    if len(text) <= max_length:
        return text
    return text[: max_length - 1].rstrip() + ELLIPSIS
