"""Tagged results for the auth core.

Expected failures (bad password, revoked session, wrong role...) are values,
not exceptions: every service returns an ``Outcome`` carrying either a value
or an ``AuthError`` plus an internal reason used only for logging.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# One message for every "who are you" failure so the response never reveals
# which check failed.
GENERIC_AUTH_MESSAGE = "Invalid credentials or session"


class AuthError(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DISABLED = "account_disabled"
    INVALID_SESSION = "invalid_session"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    PRIVILEGE_VIOLATION = "privilege_violation"
    RESET_TOKEN_INVALID = "reset_token_invalid"

    @property
    def status(self) -> int:
        if self is AuthError.RESET_TOKEN_INVALID:
            return 400
        if self in (AuthError.FORBIDDEN, AuthError.PRIVILEGE_VIOLATION):
            return 403
        return 401

    @property
    def public_message(self) -> str:
        if self is AuthError.UNAUTHENTICATED:
            return "Authentication required"
        if self is AuthError.FORBIDDEN:
            return "Insufficient role"
        if self is AuthError.PRIVILEGE_VIOLATION:
            return "Operation not permitted on this account"
        if self is AuthError.RESET_TOKEN_INVALID:
            return "Invalid or expired reset token"
        return GENERIC_AUTH_MESSAGE


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[AuthError] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: AuthError, reason: str) -> "Outcome[T]":
        return cls(error=error, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.succeeded

    @property
    def message(self) -> str:
        """Message safe to show the caller."""
        if self.error is AuthError.PRIVILEGE_VIOLATION and self.reason:
            return self.reason
        return self.error.public_message if self.error else ""
