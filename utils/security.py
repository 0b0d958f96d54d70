"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (TokenCodec)
- JTI generation for token identifiers
- one-time password-reset tokens (only their SHA-256 digest is stored)
"""
from __future__ import annotations

import hashlib
import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

ACCESS = "access"
REFRESH = "refresh"

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2 (salted per call)."""
    if not password:
        raise ValueError("password_blank")
    return ph.hash(password)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return ph.hash(uuid.uuid4().hex)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify a plaintext password against an Argon2 hash.

    When no hash is given (unknown account) a throwaway hash is verified
    instead, so the caller's response time does not reveal whether the
    account exists.
    """
    if password_hash is None:
        try:
            ph.verify(_dummy_hash(), password or "")
        except VerificationError:
            pass
        return False
    try:
        return ph.verify(password_hash, password or "")
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID)."""
    return uuid.uuid4().hex


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    """Digest kept in the database; the plaintext token is only ever handed out once."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenMalformed(TokenError):
    """Token cannot be decoded, lacks required claims or has the wrong type."""


class TokenSignatureInvalid(TokenError):
    """Token was tampered with or signed with a different key."""


class TokenExpired(TokenError):
    """Token is at or past its expiry instant."""


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    role: Optional[str]
    expires_at: int
    jti: str
    token_type: str
    raw: Dict[str, Any]


class TokenCodec:
    """Issue and verify signed tokens of one type.

    Stateless apart from its configuration; safe to share between threads.
    Expiry is evaluated against ``clock`` rather than by PyJWT so that the
    boundary (``now >= exp`` is expired) is exact and testable.
    """

    REQUIRED_CLAIMS = ["sub", "exp", "type", "jti"]

    def __init__(
        self,
        secret: str,
        token_type: str = ACCESS,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("jwt_secret_blank")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock
        self.token_type = token_type

    def issue(
        self,
        subject: str,
        ttl: timedelta,
        role: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        now = int(self._clock())
        payload: Dict[str, Any] = dict(extra or {})
        payload.update(
            {
                "sub": str(subject),
                "type": self.token_type,
                "jti": generate_jti(),
                "iat": now,
                "exp": now + int(ttl.total_seconds()),
            }
        )
        if role is not None:
            payload["role"] = role
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token. Raises TokenMalformed, TokenSignatureInvalid
        or TokenExpired.
        """
        if not token or not isinstance(token, str):
            raise TokenMalformed("Token is empty")
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": self.REQUIRED_CLAIMS},
            )
        except jwt.InvalidSignatureError as exc:
            raise TokenSignatureInvalid(str(exc)) from exc
        except jwt.InvalidTokenError as exc:
            raise TokenMalformed(f"Invalid token: {exc}") from exc

        if decoded.get("type") != self.token_type:
            raise TokenMalformed("Wrong token type")
        try:
            exp = int(decoded["exp"])
        except (TypeError, ValueError) as exc:
            raise TokenMalformed("Invalid exp claim") from exc
        if self._clock() >= exp:
            raise TokenExpired("Token expired")

        return TokenClaims(
            subject=str(decoded["sub"]),
            role=decoded.get("role"),
            expires_at=exp,
            jti=str(decoded["jti"]),
            token_type=decoded["type"],
            raw=decoded,
        )


def peek_expiry(token: str) -> Optional[int]:
    """Read the exp claim without verifying the signature (client-side scheduling only)."""
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return None
    exp = payload.get("exp")
    return int(exp) if isinstance(exp, (int, float)) else None
