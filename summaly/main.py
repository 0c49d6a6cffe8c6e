"""WSGI entry point (`summaly.main:app`); run directly for a development server."""

import os

from summaly import create_app
from summaly.config import settings

app = create_app(settings)

if __name__ == "__main__":
    app.run(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        debug=settings.ENV == "development",
    )
