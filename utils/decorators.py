"""
Endpoint authorization decorators.

Every view in the project's blueprints declares its policy: either
``roles_required([...])`` or ``public_endpoint``. ``create_app`` refuses to
start if a view declares neither, so nothing is allowed by default.
"""
from __future__ import annotations

from functools import wraps
from typing import Iterable, Optional

from flask import current_app, g, request

from api.errors import reject
from services.authorization import Identity, validate_roles

POLICY_ATTR = "auth_policy"
PUBLIC = "public"


def auth_services():
    return current_app.extensions["auth"]


def bearer_token() -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def refresh_token_from_request() -> Optional[str]:
    """Refresh credential named in the JSON body, else the httpOnly cookie."""
    payload = request.get_json(silent=True) or {}
    token = payload.get("refresh_token") if isinstance(payload, dict) else None
    if isinstance(token, str) and token:
        return token
    return request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"]) or None


def current_identity() -> Identity:
    """Identity resolved by the authorization decorator for this request."""
    identity = g.get("identity")
    if identity is None:
        raise RuntimeError("current_identity() used outside an authorized endpoint")
    return identity


def _mark(view, policy):
    setattr(view, POLICY_ATTR, policy)
    return view


def public_endpoint(fn):
    """Declare a view as deliberately reachable without credentials."""
    return _mark(fn, PUBLIC)


def roles_required(allowed_roles: Iterable[str]):
    """
    Allow access only with a valid access token whose role is in allowed_roles.
    401 when the caller is not authenticated, 403 when the role is not allowed.
    """
    roles = validate_roles(allowed_roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            outcome = auth_services().authorizer.authorize(bearer_token(), roles)
            if not outcome:
                reject(outcome)
            g.identity = outcome.value
            return fn(*args, **kwargs)

        return _mark(wrapper, roles)

    return decorator


def session_required(allowed_roles: Iterable[str]):
    """
    Like roles_required, but when no bearer token is sent the refresh
    credential is accepted instead. The renewed session is left on
    ``g.renewed_session`` for the view.
    """
    roles = validate_roles(allowed_roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            services = auth_services()
            g.renewed_session = None
            token = bearer_token()
            if token:
                outcome = services.authorizer.authorize(token, roles)
            else:
                renewed = services.rotator.refresh(refresh_token_from_request())
                if not renewed:
                    reject(renewed)
                g.renewed_session = renewed.value
                outcome = services.authorizer.check_role(renewed.value.account, roles)
            if not outcome:
                reject(outcome)
            g.identity = outcome.value
            return fn(*args, **kwargs)

        return _mark(wrapper, roles)

    return decorator
