"""
Superadmin-only surface:
- GET  /superadmin/init      does a superadmin exist?
- POST /superadmin/init      create the superadmin from SUPERADMIN_* settings (once)
- GET  /superadmin/profile   the one place a superadmin account is shown
- POST /superadmin/admins    create an admin account
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, abort, current_app

from models.account import ROLE_ADMIN, ROLE_SUPERADMIN
from models.schemas.account import AccountCreateSchema, AccountOutSchema
from utils.decorators import auth_services, current_identity, public_endpoint, roles_required

logger = logging.getLogger(__name__)

bp = Blueprint("superadmin", __name__, url_prefix="/superadmin")

account_create_schema = AccountCreateSchema()
account_out_schema = AccountOutSchema()


@bp.get("/init")
@public_endpoint
def superadmin_status():
    """
    Report whether the superadmin account has been created
    ---
    tags:
      - Superadmin
    responses:
      200:
        description: OK
    """
    return jsonify({"exists": auth_services().store.find_superadmin() is not None}), 200


@bp.post("/init")
@public_endpoint
def init_superadmin():
    """
    Create the superadmin account from SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD
    Only works while no superadmin exists.
    ---
    tags:
      - Superadmin
    responses:
      201:
        description: Created
      409:
        description: Superadmin already exists
      500:
        description: SUPERADMIN_PASSWORD is not configured
    """
    store = auth_services().store
    if store.find_superadmin() is not None:
        abort(409, description="SuperAdmin already exists")

    cfg = current_app.config
    email = cfg.get("SUPERADMIN_EMAIL")
    password = cfg.get("SUPERADMIN_PASSWORD")
    if not email or not password:
        abort(500, description="SUPERADMIN_EMAIL and SUPERADMIN_PASSWORD must be configured")
    if store.find_by_email(email):
        abort(409, description="An account with the superadmin email already exists")

    account = store.create_account(
        email=email, password=password, name=cfg.get("SUPERADMIN_NAME"), role=ROLE_SUPERADMIN
    )
    logger.info("superadmin created account=%s", account.id)
    return jsonify({"message": "SuperAdmin account created successfully", "email": account.email}), 201


@bp.get("/profile")
@roles_required([ROLE_SUPERADMIN])
def profile():
    """
    Superadmin's own account
    ---
    tags:
      - Superadmin
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      403:
        description: Insufficient role
    """
    return jsonify({"data": account_out_schema.dump(current_identity().account)}), 200


@bp.post("/admins")
@roles_required([ROLE_SUPERADMIN])
def create_admin():
    """
    Create an admin account
    ---
    tags:
      - Superadmin
    security:
      - Bearer: []
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
        description: Created
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    data = account_create_schema.load(request.get_json(silent=True) or {})
    store = auth_services().store
    if store.find_by_email(data["email"]):
        abort(409, description="An account with this email already exists")

    account = store.create_account(
        email=data["email"], password=data["password"], name=data["name"], role=ROLE_ADMIN
    )
    logger.info("admin created account=%s by=%s", account.id, current_identity().account_id)
    return jsonify({"data": account_out_schema.dump(account)}), 201
