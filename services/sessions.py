"""
Session issuance and renewal.

SessionIssuer turns a verified email/password into an access token and a
refresh token, recording the refresh token on the account. RefreshRotator
exchanges a still-recorded refresh token for a new access token, and handles
sign-out by removing recorded tokens.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from models.account import Account
from models.base_model import utcnow
from services.credentials import CredentialStore, expiry_datetime
from services.results import AuthError, Outcome
from utils.security import TokenCodec, TokenError, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionGrant:
    access_token: str
    refresh_token: str
    account: Account
    expires_in: int


@dataclass(frozen=True)
class RenewedSession:
    access_token: str
    account: Account
    expires_in: int
    # Only set when refresh-token rotation is enabled
    refresh_token: Optional[str] = None


class SessionIssuer:
    def __init__(
        self,
        store: CredentialStore,
        access_codec: TokenCodec,
        refresh_codec: TokenCodec,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
    ):
        self.store = store
        self.access_codec = access_codec
        self.refresh_codec = refresh_codec
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @property
    def access_expires_in(self) -> int:
        return int(self.access_ttl.total_seconds())

    def mint_access_token(self, account: Account) -> str:
        return self.access_codec.issue(
            account.id, self.access_ttl, role=account.role, extra={"email": account.email}
        )

    def login(self, email: str, password: str) -> Outcome[SessionGrant]:
        account = self.store.find_by_email(email)
        if account is None:
            # Burn the same hashing time as a real check
            verify_password(password, None)
            return Outcome.fail(AuthError.INVALID_CREDENTIALS, "no_such_account")
        if not verify_password(password, account.password_hash):
            return Outcome.fail(AuthError.INVALID_CREDENTIALS, "password_mismatch")
        if not account.is_active:
            return Outcome.fail(AuthError.ACCOUNT_DISABLED, "account_inactive")

        # Committed together with the new refresh-token row
        account.last_login = utcnow()
        grant = self.start_session(account)
        logger.info("login account=%s role=%s", account.id, account.role)
        return Outcome.ok(grant)

    def start_session(self, account: Account) -> SessionGrant:
        """Mint a token pair and record the refresh token (one new entry per call)."""
        access_token = self.mint_access_token(account)
        refresh_token = self.refresh_codec.issue(account.id, self.refresh_ttl)
        claims = self.refresh_codec.verify(refresh_token)
        self.store.append_refresh_token(
            account.id, refresh_token, claims.jti, expiry_datetime(claims.expires_at)
        )
        return SessionGrant(
            access_token=access_token,
            refresh_token=refresh_token,
            account=account,
            expires_in=self.access_expires_in,
        )


class RefreshRotator:
    def __init__(self, store: CredentialStore, issuer: SessionIssuer, rotate: bool = False):
        self.store = store
        self.issuer = issuer
        self.rotate = rotate

    def refresh(self, refresh_token: Optional[str]) -> Outcome[RenewedSession]:
        if not refresh_token:
            return Outcome.fail(AuthError.INVALID_SESSION, "missing_refresh_token")
        try:
            claims = self.issuer.refresh_codec.verify(refresh_token)
        except TokenError as exc:
            return Outcome.fail(AuthError.INVALID_SESSION, f"refresh_{type(exc).__name__}")

        account = self.store.get(claims.subject)
        if account is None:
            return Outcome.fail(AuthError.INVALID_SESSION, "account_missing")
        if not account.is_active:
            return Outcome.fail(AuthError.INVALID_SESSION, "account_inactive")
        if not self.store.has_refresh_token(account.id, refresh_token):
            return Outcome.fail(AuthError.INVALID_SESSION, "refresh_token_revoked")

        new_refresh = None
        if self.rotate:
            new_refresh = self.issuer.refresh_codec.issue(account.id, self.issuer.refresh_ttl)
            new_claims = self.issuer.refresh_codec.verify(new_refresh)
            swapped = self.store.replace_refresh_token(
                account.id,
                refresh_token,
                new_refresh,
                new_claims.jti,
                expiry_datetime(new_claims.expires_at),
            )
            if not swapped:
                # A concurrent renewal or sign-out got there first
                return Outcome.fail(AuthError.INVALID_SESSION, "refresh_token_replaced")
            # The bulk UPDATE expired the session's cached objects
            account = self.store.get(account.id)

        return Outcome.ok(
            RenewedSession(
                access_token=self.issuer.mint_access_token(account),
                account=account,
                expires_in=self.issuer.access_expires_in,
                refresh_token=new_refresh,
            )
        )

    def revoke(self, refresh_token: Optional[str]) -> int:
        """Sign-out: forget this refresh token. Unknown or invalid tokens are a no-op."""
        if not refresh_token:
            return 0
        removed = self.store.remove_refresh_token(refresh_token)
        logger.info("sign-out removed=%d", removed)
        return removed

    def revoke_all(self, account_id: str) -> int:
        removed = self.store.remove_all_refresh_tokens(account_id)
        logger.info("revoked all sessions account=%s removed=%d", account_id, removed)
        return removed
