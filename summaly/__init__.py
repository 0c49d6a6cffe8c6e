import logging

import flask_limiter
from dotenv import load_dotenv
from flask import Flask, request
from flask_cors import CORS
from limits.storage import storage_from_string
import structlog

from summaly.config import SummalySettings
from summaly.extensions import cache, limiter
from summaly.utils.correlation import (
    bind_request_context,
    clear_correlation_context,
    current_correlation_id,
    ensure_correlation_id,
)
from summaly.utils.logging_config import setup_logging

CORRELATION_HEADER = "X-Correlation-ID"

_SUPPORTED_CACHE_TYPES = {
    "simplecache": "SimpleCache",
    "nullcache": "NullCache",
    "filesystemcache": "FileSystemCache",
    "rediscache": "RedisCache",
}


def init_extensions(app: Flask, app_settings: SummalySettings) -> None:
    """Configure cache and rate limiter."""
    limiter_version = getattr(flask_limiter, "__version__", "0")
    app.logger.info("Flask-Limiter version: %s", limiter_version)

    selected = _SUPPORTED_CACHE_TYPES.get(app_settings.CACHE_TYPE.strip().lower())
    if selected is None:
        app.logger.error(
            "Unsupported CACHE_TYPE '%s'; falling back to SimpleCache.",
            app_settings.CACHE_TYPE,
        )
        selected = "SimpleCache"

    cache_config: dict[str, str | int] = {
        "CACHE_TYPE": selected,
        "CACHE_DEFAULT_TIMEOUT": app_settings.CACHE_DEFAULT_TIMEOUT,
    }
    if selected == "RedisCache":
        if app_settings.CACHE_REDIS_URL:
            cache_config["CACHE_REDIS_URL"] = app_settings.CACHE_REDIS_URL
        else:
            app.logger.error(
                "CACHE_TYPE is RedisCache but CACHE_REDIS_URL is not set; falling back to SimpleCache."
            )
            cache_config["CACHE_TYPE"] = "SimpleCache"
    elif selected == "FileSystemCache":
        cache_config["CACHE_DIR"] = app_settings.CACHE_DIR or app.instance_path

    cache.init_app(app, config=cache_config)
    app.config.update(cache_config)
    app.logger.info("Cache backend: %s", app.config["CACHE_TYPE"])

    storage_uri = app_settings.RATELIMIT_STORAGE_URI or "memory://"
    try:
        storage_from_string(storage_uri)
    except Exception as exc:  # pragma: no cover - fail-safe for boot issues
        app.logger.error(
            "Failed to initialize rate limiter storage '%s': %s. Falling back to memory://",
            storage_uri,
            exc,
        )
        storage_uri = "memory://"

    app.config["RATELIMIT_STORAGE_URI"] = storage_uri
    app.config["RATELIMIT_DEFAULT"] = app_settings.RATE_LIMIT
    app.config["RATELIMIT_ENABLED"] = app_settings.RATE_LIMIT_ENABLED
    limiter.init_app(app)
    app.logger.info("Rate limiter storage: %s", storage_uri)


def create_app(app_settings: SummalySettings | None = None):
    """Create and configure an instance of the Flask application."""
    load_dotenv()

    setup_logging()
    logger = logging.getLogger(__name__)

    app_settings = app_settings or SummalySettings()
    logger.info("Application starting with configuration:")
    logger.info(f"  ENV: {app_settings.ENV}")
    logger.info(f"  CACHE_TYPE: {app_settings.CACHE_TYPE}")
    logger.info(f"  RATE_LIMIT: {app_settings.RATE_LIMIT}")

    request_logger = structlog.get_logger("summaly.http")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(
        ENV_NAME=app_settings.ENV,
        SUMMALY_SETTINGS=app_settings,
    )
    app.json.sort_keys = False

    init_extensions(app, app_settings)

    CORS(app, resources={r"/*": {"origins": "*"}})

    @app.before_request
    def _bind_request_context():
        ensure_correlation_id(request.headers.get(CORRELATION_HEADER))
        bind_request_context(
            url=request.args.get("url"),
            path=request.path,
            method=request.method,
        )
        request_logger.info(event="http.request", operation="http.request")

    @app.after_request
    def _attach_correlation_header(response):
        request_logger.info(
            event="http.response",
            operation="http.response",
            status=response.status_code,
        )
        correlation_id = current_correlation_id()
        if correlation_id:
            response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @app.teardown_request
    def _clear_request_context(_exc=None):
        clear_correlation_context()

    from summaly.routes import api

    app.register_blueprint(api.bp)

    return app
