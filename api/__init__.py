import time

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage
from services import build_auth_services

API_PREFIX = "/api/v1"

# Swagger 2.0 document served at /swagger.json, UI at /apidocs/
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Celebrity Persona Auth API",
        "version": "1.0.0",
        "description": "Sign-in, session renewal and role-gated account administration.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "tags": [
        {"name": "Auth", "description": "Sessions for every role"},
        {"name": "Users", "description": "Account administration (admin, superadmin)"},
        {"name": "Superadmin", "description": "Bootstrap and superadmin-only operations"},
        {"name": "Health"},
    ],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Access token with the `Bearer ` prefix, e.g. \"Bearer eyJhbGciOi...\".",
        }
    },
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            # Only the versioned API, not flasgger's own routes
            "rule_filter": lambda rule: rule.rule.startswith(API_PREFIX),
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def _audit_endpoint_policies(app: Flask, blueprint_names):
    """Refuse to start if any project endpoint has no declared access policy."""
    from utils.decorators import POLICY_ATTR

    undeclared = sorted(
        endpoint
        for endpoint, view in app.view_functions.items()
        if endpoint.partition(".")[0] in blueprint_names
        and "." in endpoint
        and getattr(view, POLICY_ATTR, None) is None
    )
    if undeclared:
        raise RuntimeError(f"endpoints without an access policy: {undeclared}")


def _register_api(app: Flask):
    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .superadmin import bp as superadmin_bp

    blueprints = (health_bp, auth_bp, users_bp, superadmin_bp)
    for blueprint in blueprints:
        app.register_blueprint(blueprint, url_prefix=API_PREFIX + (blueprint.url_prefix or ""))
    _audit_endpoint_policies(app, {blueprint.name for blueprint in blueprints})


def create_app(config_name: str | None = None, clock=time.time) -> Flask:
    """
    Application factory.

    `clock` is handed to the token codecs; tests pass a fake one to move time
    forward without sleeping.
    """
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    origins = app.config.get("CORS_ORIGINS", "*")
    # The refresh cookie only crosses origins when they are listed explicitly
    CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=origins != "*")
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)
    register_error_handlers(app)

    storage.reload(app.config["DATABASE_URL"])
    app.extensions["auth"] = build_auth_services(app.config, storage, clock=clock)
    _register_api(app)

    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Celebrity Persona Auth API",
            "docs": "/apidocs/",
            "health": f"{API_PREFIX}/health",
        }, 200

    return app
