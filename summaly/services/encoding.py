"""Character-encoding detection and decoding of raw response bodies."""

from __future__ import annotations

import codecs
import re
import threading

import structlog

logger = structlog.get_logger(__name__)

SNIFF_BYTES = 4096
DEFAULT_ENCODING = "utf-8"

_CHARSET_PATTERN = re.compile(r"charset\s*=\s*[\"']?([\w-]+)", re.IGNORECASE | re.ASCII)

_ALIASES: dict[str, str] = {
    "shift_jis": "shift-jis",
    "shift-jis": "shift-jis",
    "windows-31j": "shift-jis",
    "x-sjis": "shift-jis",
    "cp932": "shift-jis",
    "gb2312": "gbk",
    "gbk": "gbk",
}

# Browsers decode these labels with the superset codec, so pages labelled
# Shift_JIS routinely contain Windows-31J-only characters.
_PYTHON_CODECS: dict[str, str] = {
    "shift-jis": "cp932",
    "gbk": "gb18030",
}


def normalize_encoding(label: str) -> str:
    lowered = label.strip().lower()
    return _ALIASES.get(lowered, lowered)


class DecoderCache:
    """Append-only map of normalized encoding name to an immutable codec.

    Lookups never take the lock; two threads racing on a miss both build the
    same ``CodecInfo`` and the second insert is a no-op.
    """

    def __init__(self) -> None:
        self._codecs: dict[str, codecs.CodecInfo] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: str) -> bool:
        return name in self._codecs

    def __len__(self) -> int:
        return len(self._codecs)

    def get(self, name: str) -> codecs.CodecInfo:
        """Return the decoder for ``name`` or raise ``LookupError``."""
        cached = self._codecs.get(name)
        if cached is not None:
            return cached

        codec_name = _PYTHON_CODECS.get(name, name)
        info = codecs.lookup(codec_name)
        # bytes.decode refuses bytes-to-bytes codecs such as base64 or zlib.
        b"".decode(info.name)

        with self._lock:
            return self._codecs.setdefault(name, info)


DEFAULT_DECODER_CACHE = DecoderCache()


def _is_supported(name: str, cache: DecoderCache) -> bool:
    try:
        cache.get(name)
    except (LookupError, UnicodeError):
        return False
    return True


def detect_encoding(body: bytes, cache: DecoderCache = DEFAULT_DECODER_CACHE) -> str:
    """Detect the charset declared near the start of ``body``.

    Only the first 4 KiB are inspected. Undeclared or unsupported charsets
    resolve to ``utf-8``.
    """
    sample = body[:SNIFF_BYTES].decode("ascii", errors="replace")
    match = _CHARSET_PATTERN.search(sample)
    if not match:
        return DEFAULT_ENCODING

    candidate = normalize_encoding(match.group(1))
    if _is_supported(candidate, cache):
        return candidate

    logger.debug(
        event="encoding_unsupported",
        operation="encoding.detect",
        candidate=candidate,
    )
    return DEFAULT_ENCODING


def decode_body(
    body: bytes,
    encoding: str,
    cache: DecoderCache = DEFAULT_DECODER_CACHE,
) -> str:
    """Decode ``body`` as ``encoding``; never raises."""
    name = normalize_encoding(encoding)
    try:
        info = cache.get(name)
    except (LookupError, UnicodeError):
        info = cache.get(DEFAULT_ENCODING)

    try:
        text, _ = info.decode(body, "replace")
    except (UnicodeError, ValueError, TypeError):
        text, _ = cache.get(DEFAULT_ENCODING).decode(body, "replace")
    return text
