"""
Account management for administrators.

Superadmin accounts never appear here: listings and lookups go through
PrivilegeGuard.visible, and every mutation goes through the guard's checks.
"""
from __future__ import annotations

import logging
from typing import Tuple

from flask import Blueprint, request, jsonify, abort
from sqlalchemy import or_, func

from api.errors import reject
from models import storage
from models.account import Account, ROLE_ADMIN, ROLE_SUPERADMIN
from models.schemas.account import AccountListQuerySchema, AccountOutSchema, AccountUpdateSchema
from utils.decorators import auth_services, current_identity, roles_required
from utils.security import hash_password

logger = logging.getLogger(__name__)

MAX_LIMIT = 100
MANAGERS = [ROLE_ADMIN, ROLE_SUPERADMIN]
LIKE_ESCAPE = "\\"

bp = Blueprint("users", __name__)

account_out_schema = AccountOutSchema()
account_list_out_schema = AccountOutSchema(many=True)
account_update_schema = AccountUpdateSchema()
list_query_schema = AccountListQuerySchema()


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def _contains_pattern(text: str) -> str:
    """LIKE pattern matching `text` literally anywhere, case-folded."""
    text = text.strip().lower()
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text}%"


def _visible_accounts():
    services = auth_services()
    return services.guard.visible(services.store.session.query(Account))


def _get_visible_or_404(account_id: str) -> Account:
    account = _visible_accounts().filter(Account.id == account_id).first()
    if account is None:
        abort(404, description="Account not found")
    return account


def _get_or_404(account_id: str) -> Account:
    account = auth_services().store.get(account_id)
    if account is None:
        abort(404, description="Account not found")
    return account


@bp.get("/users")
@roles_required(MANAGERS)
def list_accounts():
    """
    List accounts (pagination, q search on name/email, role filter)
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
      - in: query
        name: q
        type: string
      - in: query
        name: role
        type: string
        enum: [user, admin]
    responses:
      200: { description: OK }
      403: { description: Insufficient role }
    """
    page, limit = parse_pagination()
    filters = list_query_schema.load(request.args.to_dict())

    query = _visible_accounts()
    if filters["role"]:
        query = query.filter(Account.role == filters["role"])
    if filters["q"]:
        pattern = _contains_pattern(filters["q"])
        query = query.filter(
            or_(
                func.lower(Account.name).like(pattern, escape=LIKE_ESCAPE),
                Account.email.like(pattern, escape=LIKE_ESCAPE),
            )
        )

    total = query.count()
    rows = (
        query.order_by(Account.created_at.desc(), Account.email.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return jsonify(
        {
            "data": account_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total},
        }
    )


@bp.get("/users/<account_id>")
@roles_required(MANAGERS)
def get_account(account_id: str):
    """
    Get an account by id
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: account_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    return jsonify({"data": account_out_schema.dump(_get_visible_or_404(account_id))}), 200


@bp.put("/users/<account_id>")
@roles_required(MANAGERS)
def update_account(account_id: str):
    """
    Update an account (name, email, role, is_active, new_password)
    Superadmin accounts only accept new_password.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: path
        name: account_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            role: { type: string, enum: [user, admin, superadmin] }
            is_active: { type: boolean }
            new_password: { type: string }
    responses:
      200: { description: OK }
      403: { description: Privilege violation }
      404: { description: Not found }
      409: { description: Email already in use }
    """
    changes = account_update_schema.load(request.get_json(silent=True) or {})
    target = _get_or_404(account_id)
    services = auth_services()

    outcome = services.guard.check_update(target, changes, current_identity().role)
    if not outcome:
        reject(outcome)
    effective = outcome.value

    if "email" in effective and services.store.find_by_email(effective["email"]):
        abort(409, description="Email already in use")
    new_password = effective.pop("new_password", None)
    if new_password:
        target.password_hash = hash_password(new_password)
    for key, value in effective.items():
        setattr(target, key, value)
    target.save()

    logger.info(
        "account updated target=%s by=%s fields=%s",
        target.id,
        current_identity().account_id,
        sorted(list(effective) + (["password"] if new_password else [])),
    )
    return jsonify({"data": account_out_schema.dump(target)}), 200


@bp.delete("/users/<account_id>")
@roles_required(MANAGERS)
def delete_account(account_id: str):
    """
    Delete an account (never a superadmin)
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: account_id
        type: string
        required: true
    responses:
      204: { description: Deleted }
      403: { description: Privilege violation }
      404: { description: Not found }
    """
    target = _get_or_404(account_id)
    services = auth_services()
    outcome = services.guard.check_delete(target)
    if not outcome:
        reject(outcome)
    target.delete()
    storage.save()
    logger.info("account deleted target=%s by=%s", account_id, current_identity().account_id)
    return ("", 204)


@bp.post("/users/<account_id>/revoke-sessions")
@roles_required([ROLE_SUPERADMIN])
def revoke_sessions(account_id: str):
    """
    Sign an account out on every device
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: account_id
        type: string
        required: true
    responses:
      200: { description: Sessions revoked }
      403: { description: Privilege violation }
      404: { description: Not found }
    """
    target = _get_or_404(account_id)
    services = auth_services()
    outcome = services.guard.check_session_revocation(target, current_identity().account_id)
    if not outcome:
        reject(outcome)
    removed = services.rotator.revoke_all(target.id)
    return jsonify({"data": {"id": account_id, "revoked": removed}}), 200
