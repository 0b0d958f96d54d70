"""
Development server: ``python -m api``.
Production deployments serve create_app() from a WSGI server instead.
"""
import logging
import os

from . import create_app

app = create_app()

logging.basicConfig(
    level=getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

if __name__ == "__main__":
    debug_default = "1" if app.config.get("DEBUG") else "0"
    app.run(
        host=os.getenv("FLASK_RUN_HOST", "127.0.0.1"),
        port=int(os.getenv("FLASK_RUN_PORT", "8000")),
        debug=os.getenv("FLASK_DEBUG", debug_default).lower() in ("1", "true", "yes"),
    )
