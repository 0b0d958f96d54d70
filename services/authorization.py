"""
Request authorization: access token -> live account -> role check.

The role checked is the one embedded in the access token when it was issued.
If an account's role changes, tokens already issued keep their old role until
they expire (at most ACCESS_TOKEN_EXPIRES). Only liveness (account exists and
is active) is read from the store on each request.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from models.account import Account, ROLES
from services.credentials import CredentialStore
from services.results import AuthError, Outcome
from utils.security import TokenCodec, TokenError


@dataclass(frozen=True)
class Identity:
    account_id: str
    email: str
    role: str
    account: Account


def validate_roles(allowed_roles: Iterable[str]) -> frozenset:
    roles = frozenset(allowed_roles or ())
    if not roles:
        raise ValueError("an endpoint must allow at least one role")
    unknown = roles - set(ROLES)
    if unknown:
        raise ValueError(f"unknown roles: {sorted(unknown)}")
    return roles


class Authorizer:
    def __init__(self, store: CredentialStore, access_codec: TokenCodec):
        self.store = store
        self.access_codec = access_codec

    def authorize(self, token: Optional[str], allowed_roles: Iterable[str]) -> Outcome[Identity]:
        roles = frozenset(allowed_roles)
        if not token:
            return Outcome.fail(AuthError.UNAUTHENTICATED, "missing_token")
        try:
            claims = self.access_codec.verify(token)
        except TokenError as exc:
            return Outcome.fail(AuthError.UNAUTHENTICATED, f"access_{type(exc).__name__}")

        account = self.store.get(claims.subject)
        if account is None:
            return Outcome.fail(AuthError.UNAUTHENTICATED, "account_missing")
        if not account.is_active:
            return Outcome.fail(AuthError.UNAUTHENTICATED, "account_inactive")
        if claims.role not in roles:
            return Outcome.fail(AuthError.FORBIDDEN, f"role_{claims.role}_not_in_{sorted(roles)}")

        return Outcome.ok(
            Identity(account_id=account.id, email=account.email, role=claims.role, account=account)
        )

    @staticmethod
    def check_role(account: Account, allowed_roles: Iterable[str]) -> Outcome[Identity]:
        """Role check for an account resolved without an access token (refresh credential)."""
        if account.role not in frozenset(allowed_roles):
            return Outcome.fail(AuthError.FORBIDDEN, f"role_{account.role}_not_allowed")
        return Outcome.ok(
            Identity(account_id=account.id, email=account.email, role=account.role, account=account)
        )
