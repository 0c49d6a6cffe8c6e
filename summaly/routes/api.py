import math
from typing import Optional
from urllib.parse import urlparse

import structlog
from flask import Blueprint, current_app, jsonify, request

from summaly.config import ScrapingOptions
from summaly.extensions import cache, limiter
from summaly.services import summarizer as summarizer_service
from summaly.services.exceptions import SummalyError

bp = Blueprint("api", __name__)
logger = structlog.get_logger(__name__)

ALLOWED_URL_SCHEMES = {"http", "https"}
_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


def parse_number_param(value: Optional[str]) -> Optional[float]:
    """Non-negative number from a query value; anything else is ignored."""
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def parse_boolean_param(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def _is_valid_url(candidate: str) -> bool:
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return False
    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES:
        return False
    return bool(parsed.netloc)


def _options_from_request() -> ScrapingOptions:
    settings = current_app.config["SUMMALY_SETTINGS"]
    content_length_limit = parse_number_param(request.args.get("contentLengthLimit"))
    return ScrapingOptions.from_settings(settings).merged(
        lang=request.args.get("lang") or None,
        operation_timeout=parse_number_param(request.args.get("timeout")),
        content_length_limit=(
            int(content_length_limit) if content_length_limit is not None else None
        ),
        content_length_required=parse_boolean_param(
            request.args.get("contentLengthRequired")
        ),
        user_agent=request.args.get("userAgent") or None,
    )


def _error_response(message: str, status: int):
    # The cache response filter receives the view's return value as is.
    response = jsonify({"error": message})
    response.status_code = status
    return response


def _only_successes(response) -> bool:
    return response.status_code == 200


@bp.route("/", methods=["GET"])
@bp.route("/api/summarize", methods=["GET"])
@cache.cached(query_string=True, response_filter=_only_successes)
def summarize():
    target_url = request.args.get("url")
    if not target_url:
        logger.warning(
            event="request_rejected",
            operation="api.summarize",
            reason="missing_url_parameter",
        )
        return _error_response("Missing required parameter: url", 400)
    if not _is_valid_url(target_url):
        logger.warning(
            event="request_rejected",
            operation="api.summarize",
            reason="invalid_url_format",
            url=target_url,
        )
        return _error_response("Invalid URL format", 400)

    options = _options_from_request()
    logger.info(
        event="summarization_request",
        operation="api.summarize",
        url=target_url,
        lang=options.lang,
        operation_timeout=options.operation_timeout,
        content_length_limit=options.content_length_limit,
        content_length_required=options.content_length_required,
    )

    try:
        summary = summarizer_service.summaly(target_url, options)
    except SummalyError as exc:
        logger.error(
            event="summarization_error",
            operation="api.summarize",
            url=target_url,
            error_type=exc.__class__.__name__,
            error=str(exc),
        )
        return _error_response(str(exc), 500)

    logger.info(
        event="summarization_success",
        operation="api.summarize",
        url=target_url,
        has_title=summary.title is not None,
        has_description=summary.description is not None,
        has_thumbnail=summary.thumbnail is not None,
        has_player=summary.player.url is not None,
        sensitive=summary.sensitive,
    )
    return jsonify(summary.to_dict())


@bp.route("/health")
@limiter.exempt
def health():
    return jsonify({"status": "ok"})


@bp.route("/healthz")
@limiter.exempt
def healthz():
    """Lightweight liveness probe."""
    return "ok", 200


@bp.app_errorhandler(404)
def not_found(_error):
    return jsonify({"error": "Not found"}), 404


@bp.app_errorhandler(405)
def method_not_allowed(_error):
    return jsonify({"error": "Method not allowed"}), 405
