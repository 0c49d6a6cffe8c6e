import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Mapping, Optional

import requests
import structlog
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

from summaly.config import ScrapingOptions
from summaly.services.encoding import decode_body, detect_encoding
from summaly.services.exceptions import (
    FetchTimeout,
    SizeLimitExceeded,
    TransportError,
)

logger = structlog.get_logger(__name__)

HTML_TYPE_FILTER = re.compile(r"^(text/html|application/xhtml\+xml)", re.IGNORECASE)
HTML_ACCEPT = "text/html,application/xhtml+xml"
CHUNK_SIZE = 16 * 1024

_session_lock = threading.Lock()
_session: requests.Session | None = None


@dataclass(frozen=True)
class FetchResponse:
    url: str
    status: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return decode_body(self.body, detect_encoding(self.body))


@dataclass(frozen=True)
class ScrapedPage:
    url: str
    html: str
    headers: CaseInsensitiveDict
    status: int


def _no_retry_adapter() -> HTTPAdapter:
    # Retry policy belongs to callers; every request is attempted exactly once.
    return HTTPAdapter(max_retries=0, pool_connections=16, pool_maxsize=32)


def _get_session() -> requests.Session:
    global _session
    if _session is not None:
        return _session
    with _session_lock:
        if _session is not None:
            return _session
        sess = requests.Session()
        adapter = _no_retry_adapter()
        sess.mount("https://", adapter)
        sess.mount("http://", adapter)
        _session = sess
    return _session


def _build_headers(
    options: ScrapingOptions, accept: str, extra: Optional[Mapping[str, str]] = None
) -> dict[str, str]:
    headers = {
        "Accept": accept,
        "User-Agent": options.effective_user_agent,
    }
    if options.lang:
        headers["Accept-Language"] = options.lang
    if extra:
        headers.update(extra)
    return headers


def _check_declared_length(
    url: str, response: requests.Response, options: ScrapingOptions
) -> None:
    limit = options.effective_content_length_limit
    declared = response.headers.get("Content-Length")
    if declared:
        try:
            size = int(declared)
        except ValueError:
            size = None
        if size is not None and size > limit:
            raise SizeLimitExceeded(
                f"maxSize exceeded ({size} > {limit}) on response", url=url
            )
    elif options.content_length_required:
        raise SizeLimitExceeded("content-length required", url=url)


def _read_body(
    url: str,
    response: requests.Response,
    options: ScrapingOptions,
    deadline: float,
) -> bytes:
    limit = options.effective_content_length_limit
    chunks: list[bytes] = []
    received = 0
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        if time.monotonic() > deadline:
            raise _timed_out(url, options)
        if not chunk:
            continue
        received += len(chunk)
        if received > limit:
            raise SizeLimitExceeded(
                f"maxSize exceeded ({received} > {limit}) on response", url=url
            )
        chunks.append(chunk)
    return b"".join(chunks)


def _timed_out(url: str, options: ScrapingOptions) -> FetchTimeout:
    logger.warning(
        event="fetch_timeout",
        operation="fetch.request",
        url=url,
        operation_timeout=options.effective_operation_timeout,
    )
    return FetchTimeout(
        f"Request timeout after {options.effective_operation_timeout}s", url=url
    )


def _perform(
    url: str,
    method: str,
    headers: Mapping[str, str],
    options: ScrapingOptions,
    type_filter: Optional[re.Pattern[str]],
    session: requests.Session,
    deadline: float,
    in_flight: list,
) -> FetchResponse:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise _timed_out(url, options)
    per_read = min(options.effective_response_timeout, remaining)
    try:
        response = session.request(
            method,
            url,
            headers=dict(headers),
            timeout=(per_read, per_read),
            allow_redirects=True,
            stream=True,
        )
    except requests.Timeout as exc:
        raise _timed_out(url, options) from exc
    except requests.RequestException as exc:
        logger.warning(
            event="fetch_request_exception",
            operation="fetch.request",
            url=url,
            error=str(exc),
        )
        raise TransportError(f"Failed to fetch URL: {exc}", url=url) from exc

    in_flight.append(response)
    try:
        if not response.ok:
            logger.warning(
                event="fetch_bad_status",
                operation="fetch.request",
                url=url,
                status=response.status_code,
            )
            raise TransportError(
                f"{response.status_code} {response.reason}",
                url=url,
                status=response.status_code,
                reason=response.reason,
            )

        content_type = response.headers.get("Content-Type")
        if type_filter is not None and content_type and not type_filter.match(content_type):
            raise TransportError(
                f"Rejected by type filter {content_type}",
                url=url,
                status=response.status_code,
            )

        if method.upper() == "HEAD":
            body = b""
        else:
            _check_declared_length(url, response, options)
            try:
                body = _read_body(url, response, options, deadline)
            except requests.Timeout as exc:
                raise _timed_out(url, options) from exc
            except requests.RequestException as exc:
                raise TransportError(f"Failed to read body: {exc}", url=url) from exc
    finally:
        response.close()

    return FetchResponse(
        url=response.url or url,
        status=response.status_code,
        headers=CaseInsensitiveDict(response.headers),
        body=body,
    )


def fetch(
    url: str,
    method: str = "GET",
    headers: Optional[Mapping[str, str]] = None,
    *,
    options: Optional[ScrapingOptions] = None,
    type_filter: Optional[re.Pattern[str]] = None,
    session: Optional[requests.Session] = None,
) -> FetchResponse:
    """Perform a single bounded HTTP request.

    The request runs on a worker thread so the operation timeout bounds the
    whole call, connect and headers included, however slowly the server
    sends. When it fires the response is closed and the worker is abandoned.

    Raises ``TransportError`` for non-2xx answers, unreachable hosts and
    rejected content types, ``FetchTimeout`` when the response or operation
    budget runs out and ``SizeLimitExceeded`` for oversized bodies.
    """
    options = options or ScrapingOptions.from_settings()
    session = session or _get_session()
    started = time.monotonic()
    deadline = started + options.effective_operation_timeout

    logger.debug(
        event="fetch_start",
        operation="fetch.request",
        url=url,
        method=method,
    )
    in_flight: list[requests.Response] = []
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="summaly-fetch")
    try:
        future = executor.submit(
            _perform,
            url,
            method,
            headers or {},
            options,
            type_filter,
            session,
            deadline,
            in_flight,
        )
        try:
            result = future.result(timeout=max(deadline - time.monotonic(), 0.0))
        except FuturesTimeout:
            future.cancel()
            for response in in_flight:
                response.close()
            raise _timed_out(url, options) from None
    finally:
        executor.shutdown(wait=False)

    logger.debug(
        event="fetch_success",
        operation="fetch.request",
        url=result.url,
        status=result.status,
        bytes=len(result.body),
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )
    return result


def scraping(
    url: str,
    options: Optional[ScrapingOptions] = None,
    *,
    session: Optional[requests.Session] = None,
) -> ScrapedPage:
    """Fetch an HTML page and decode it using its declared charset."""
    options = options or ScrapingOptions.from_settings()
    response = fetch(
        url,
        "GET",
        _build_headers(options, HTML_ACCEPT),
        options=options,
        type_filter=HTML_TYPE_FILTER,
        session=session,
    )
    encoding = detect_encoding(response.body)
    return ScrapedPage(
        url=response.url,
        html=decode_body(response.body, encoding),
        headers=response.headers,
        status=response.status,
    )


def get_text(
    url: str,
    options: Optional[ScrapingOptions] = None,
    *,
    session: Optional[requests.Session] = None,
) -> str:
    options = options or ScrapingOptions.from_settings()
    response = fetch(
        url,
        "GET",
        _build_headers(options, "*/*"),
        options=options,
        session=session,
    )
    return response.text


def head(
    url: str,
    options: Optional[ScrapingOptions] = None,
    *,
    session: Optional[requests.Session] = None,
) -> FetchResponse:
    options = options or ScrapingOptions.from_settings()
    return fetch(
        url,
        "HEAD",
        _build_headers(options, "*/*"),
        options=options,
        session=session,
    )
