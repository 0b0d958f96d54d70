"""
Authentication blueprint:
- POST /auth/signup
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET  /auth/me
- PUT  /auth/password
- POST /auth/reset-password   (issue a one-time reset token)
- PUT  /auth/reset-password   (consume it and set a new password)
- DELETE /auth/account        (delete your own account, password required)

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and long-lived refresh tokens (JWTs signed with HS256)
- Stores every issued refresh token on the account so it can be revoked (or rotated)
- The refresh token travels in an httpOnly cookie and in the JSON body for API clients
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, abort, current_app, g

from models import storage
from models.account import ROLES, ROLE_USER
from models.schemas.account import (
    AccountCreateSchema,
    AccountDeleteSchema,
    AccountOutSchema,
    LoginSchema,
    PasswordChangeSchema,
    ResetConfirmSchema,
    ResetRequestSchema,
)
from api.errors import reject
from utils.decorators import (
    auth_services,
    current_identity,
    public_endpoint,
    refresh_token_from_request,
    roles_required,
    session_required,
)
from utils.security import verify_password

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")

account_create_schema = AccountCreateSchema()
account_out_schema = AccountOutSchema()
login_schema = LoginSchema()
password_change_schema = PasswordChangeSchema()
reset_request_schema = ResetRequestSchema()
reset_confirm_schema = ResetConfirmSchema()
account_delete_schema = AccountDeleteSchema()


def _set_refresh_cookie(response, refresh_token: str):
    cfg = current_app.config
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        refresh_token,
        max_age=int(cfg["REFRESH_TOKEN_EXPIRES"].total_seconds()),
        httponly=True,
        secure=cfg["REFRESH_COOKIE_SECURE"],
        samesite="Strict",
        path=cfg["REFRESH_COOKIE_PATH"],
    )
    return response


def _clear_refresh_cookie(response):
    cfg = current_app.config
    response.delete_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        path=cfg["REFRESH_COOKIE_PATH"],
        secure=cfg["REFRESH_COOKIE_SECURE"],
        httponly=True,
        samesite="Strict",
    )
    return response


def _session_response(grant, status: int):
    response = jsonify(
        {
            "data": account_out_schema.dump(grant.account),
            "access_token": grant.access_token,
            "refresh_token": grant.refresh_token,
            "token_type": "bearer",
            "expires_in": grant.expires_in,
        }
    )
    response.status_code = status
    return _set_refresh_cookie(response, grant.refresh_token)


@bp.post("/signup")
@public_endpoint
def signup():
    """
    Create a standard user account and sign it in.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created (returns tokens)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    data = account_create_schema.load(request.get_json(silent=True) or {})
    services = auth_services()
    if services.store.find_by_email(data["email"]):
        abort(409, description="Email already registered")

    # Signup only ever creates standard users
    account = services.store.create_account(
        email=data["email"], password=data["password"], name=data["name"], role=ROLE_USER
    )
    grant = services.issuer.start_session(account)
    logger.info("signup account=%s", account.id)
    return _session_response(grant, 201)


@bp.post("/login")
@public_endpoint
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens, sets refresh cookie)
      401:
        description: Invalid credentials or disabled account
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    outcome = auth_services().issuer.login(data["email"], data["password"])
    if not outcome:
        reject(outcome)
    return _session_response(outcome.value, 200)


@bp.post("/refresh")
@public_endpoint
def refresh():
    """
    Exchange a refresh token for a new access token
    Refresh token comes from the refresh cookie or body { "refresh_token": "<token>" }
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (new access token)
      401:
        description: Expired, tampered or revoked refresh token
    """
    outcome = auth_services().rotator.refresh(refresh_token_from_request())
    if not outcome:
        reject(outcome)
    renewed = outcome.value
    payload = {
        "data": account_out_schema.dump(renewed.account),
        "access_token": renewed.access_token,
        "token_type": "bearer",
        "expires_in": renewed.expires_in,
    }
    if renewed.refresh_token:
        payload["refresh_token"] = renewed.refresh_token
    response = jsonify(payload)
    if renewed.refresh_token:
        _set_refresh_cookie(response, renewed.refresh_token)
    return response, 200


@bp.post("/logout")
@public_endpoint
def logout():
    """
    logout: revokes this device's refresh token
    Always succeeds and always clears the refresh cookie.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: Logged out
    """
    token = refresh_token_from_request()
    try:
        auth_services().rotator.revoke(token)
    except Exception:
        # The client is signed out either way; keep the failure in the logs
        logger.exception("failed to remove refresh token on logout")
    response = jsonify({"message": "Logged out successfully"})
    return _clear_refresh_cookie(response), 200


@bp.get("/me")
@session_required(ROLES)
def me():
    """
    Current account plus a fresh access token.
    Accepts a Bearer access token, or the refresh cookie for silent session restore.
    With rotation enabled, a restore also returns the replacement refresh_token.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    identity = current_identity()
    renewed = g.get("renewed_session")
    if renewed is not None:
        access_token = renewed.access_token
    else:
        access_token = auth_services().issuer.mint_access_token(identity.account)
    payload = {
        "data": account_out_schema.dump(identity.account),
        "access_token": access_token,
        "token_type": "bearer",
    }
    rotated = renewed.refresh_token if renewed is not None else None
    if rotated:
        # The presented refresh token is dead now; body-carrying clients need the new one
        payload["refresh_token"] = rotated
    response = jsonify(payload)
    if rotated:
        _set_refresh_cookie(response, rotated)
    return response, 200


@bp.put("/password")
@roles_required(ROLES)
def change_password():
    """
    Change your own password
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             current_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password updated
      400:
        description: Current password is incorrect
    """
    data = password_change_schema.load(request.get_json(silent=True) or {})
    account = current_identity().account
    if not verify_password(data["current_password"], account.password_hash):
        abort(400, description="Current password is incorrect")
    auth_services().store.set_password(account, data["new_password"])
    logger.info("password changed account=%s", account.id)
    return jsonify({"message": "Password updated successfully"}), 200


@bp.post("/reset-password")
@public_endpoint
def request_password_reset():
    """
    Start a password reset
    Always answers 200 so the response does not reveal whether the email exists.
    The token is valid for PASSWORD_RESET_EXPIRES and works once; it is only
    included in the response when RESET_TOKEN_IN_RESPONSE is enabled.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: Reset requested
    """
    data = reset_request_schema.load(request.get_json(silent=True) or {})
    token = auth_services().resets.request(data["email"])
    payload = {"message": "If the email exists, a reset token has been generated"}
    if token and current_app.config.get("RESET_TOKEN_IN_RESPONSE"):
        payload["reset_token"] = token
    return jsonify(payload), 200


@bp.put("/reset-password")
@public_endpoint
def confirm_password_reset():
    """
    Set a new password with a reset token
    Signs the account out on every device.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             reset_token: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password reset
      400:
        description: Invalid or expired reset token
    """
    data = reset_confirm_schema.load(request.get_json(silent=True) or {})
    outcome = auth_services().resets.reset(data["reset_token"], data["new_password"])
    if not outcome:
        reject(outcome)
    return jsonify({"message": "Password reset successfully"}), 200


@bp.delete("/account")
@roles_required(ROLES)
def delete_own_account():
    """
    Permanently delete your own account
    Requires the current password. Superadmin accounts cannot be deleted.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             password: { type: string }
    responses:
      200:
        description: Account deleted
      400:
        description: Incorrect password
      403:
        description: Superadmin accounts cannot be deleted
    """
    data = account_delete_schema.load(request.get_json(silent=True) or {})
    account = current_identity().account
    outcome = auth_services().guard.check_delete(account)
    if not outcome:
        reject(outcome)
    if not verify_password(data["password"], account.password_hash):
        abort(400, description="Incorrect password")

    account_id = account.id
    account.delete()
    storage.save()
    logger.info("account self-deleted account=%s", account_id)
    response = jsonify({"message": "Account deleted successfully"})
    return _clear_refresh_cookie(response), 200
