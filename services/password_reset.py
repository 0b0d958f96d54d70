"""
Password reset by one-time token.

request() hands out a random token for an active account and stores only its
SHA-256 digest with an expiry. reset() consumes the token to set a new
password and signs the account out on every device.
"""
from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable, Optional

from services.credentials import CredentialStore, expiry_datetime
from services.results import AuthError, Outcome
from services.sessions import RefreshRotator
from utils.security import generate_reset_token, hash_reset_token

logger = logging.getLogger(__name__)

DEFAULT_RESET_TTL = timedelta(minutes=15)


class PasswordResetService:
    def __init__(
        self,
        store: CredentialStore,
        rotator: RefreshRotator,
        ttl: timedelta = DEFAULT_RESET_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.rotator = rotator
        self.ttl = ttl
        self._clock = clock

    def request(self, email: str) -> Optional[str]:
        """Issue a reset token, or None for unknown and disabled accounts."""
        account = self.store.find_by_email(email)
        if account is None or not account.is_active:
            return None
        token = generate_reset_token()
        expires_at = expiry_datetime(int(self._clock() + self.ttl.total_seconds()))
        self.store.set_reset_token(account, hash_reset_token(token), expires_at)
        logger.info("password reset issued account=%s", account.id)
        return token

    def reset(self, token: Optional[str], new_password: str) -> Outcome[str]:
        if not token:
            return Outcome.fail(AuthError.RESET_TOKEN_INVALID, "missing_reset_token")
        now = expiry_datetime(int(self._clock()))
        account_id = self.store.consume_reset_token(hash_reset_token(token), now, new_password)
        if account_id is None:
            return Outcome.fail(AuthError.RESET_TOKEN_INVALID, "reset_token_unknown_or_expired")
        self.rotator.revoke_all(account_id)
        logger.info("password reset completed account=%s", account_id)
        return Outcome.ok(account_id)
