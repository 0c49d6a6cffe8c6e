import pytest

from summaly.config import ScrapingOptions, SummalySettings


@pytest.fixture()
def options():
    return ScrapingOptions(
        response_timeout=5.0,
        operation_timeout=10.0,
        content_length_limit=1024 * 1024,
    )


@pytest.fixture()
def app():
    from summaly import create_app

    app = create_app(
        SummalySettings(
            ENV="testing",
            CACHE_TYPE="NullCache",
            RATE_LIMIT_ENABLED=False,
        )
    )
    app.config.update(TESTING=True)
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()
