"""
Authentication and session services.

`build_auth_services` wires the credential store, token codecs, issuer,
rotator, authorizer, privilege guard and password resets from a Flask
config mapping.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Mapping

from services.authorization import Authorizer
from services.credentials import CredentialStore
from services.guard import PrivilegeGuard
from services.password_reset import DEFAULT_RESET_TTL, PasswordResetService
from services.sessions import RefreshRotator, SessionIssuer
from utils.security import ACCESS, REFRESH, TokenCodec


@dataclass
class AuthServices:
    store: CredentialStore
    issuer: SessionIssuer
    rotator: RefreshRotator
    authorizer: Authorizer
    guard: PrivilegeGuard
    resets: PasswordResetService


def build_auth_services(config: Mapping, storage, clock: Callable[[], float] = time.time) -> AuthServices:
    store = CredentialStore(storage)
    algorithm = config.get("JWT_ALGORITHM", "HS256")
    access_codec = TokenCodec(config["JWT_ACCESS_SECRET"], ACCESS, algorithm, clock)
    refresh_codec = TokenCodec(config["JWT_REFRESH_SECRET"], REFRESH, algorithm, clock)
    issuer = SessionIssuer(
        store,
        access_codec,
        refresh_codec,
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
    )
    rotator = RefreshRotator(store, issuer, rotate=bool(config.get("ROTATE_REFRESH_TOKENS", False)))
    return AuthServices(
        store=store,
        issuer=issuer,
        rotator=rotator,
        authorizer=Authorizer(store, access_codec),
        guard=PrivilegeGuard(),
        resets=PasswordResetService(
            store, rotator, ttl=config.get("PASSWORD_RESET_EXPIRES", DEFAULT_RESET_TTL), clock=clock
        ),
    )
