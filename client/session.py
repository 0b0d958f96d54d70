"""
Client-side session state.

A ClientSession is an explicit object handed to whatever makes API calls; it
is never a module-level singleton, so several sessions can live side by side.
It keeps the signed-in account and tokens in memory and keeps exactly one
renewal timer pending, set to fire `safety_margin` seconds before the access
token expires. A failed renewal signs the session out; it is not retried.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from client.api import ApiError, AuthApiClient
from utils.security import peek_expiry

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_MARGIN = 60.0
# Lower bound between renewals, whatever lifetime the server hands out
MIN_RENEWAL_DELAY = 1.0


class NotAuthenticated(Exception):
    """Raised when a protected call is attempted without a live session."""


@dataclass(frozen=True)
class LoginResult:
    success: bool
    message: str
    account: Optional[Dict[str, Any]] = None


class ClientSession:
    def __init__(
        self,
        api: AuthApiClient,
        clock: Callable[[], float] = time.time,
        timer_factory: Callable[..., Any] = threading.Timer,
        safety_margin: float = DEFAULT_SAFETY_MARGIN,
        refresh_token: Optional[str] = None,
    ):
        self.api = api
        self._clock = clock
        self._timer_factory = timer_factory
        self.safety_margin = safety_margin
        self._lock = threading.RLock()
        self._timer = None
        # Bumped on every sign-out so a renewal already in flight cannot revive the session
        self._generation = 0
        self.identity: Optional[Dict[str, Any]] = None
        self.access_token: Optional[str] = None
        # Refresh credential persisted by the caller from a previous run, if any
        self.refresh_token: Optional[str] = refresh_token

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None and self.access_token is not None

    def auth_headers(self) -> Dict[str, str]:
        token = self.access_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    # lifecycle

    def restore(self) -> bool:
        """Silently resume a session through the refresh credential; never raises."""
        try:
            payload = self.api.whoami(refresh_token=self.refresh_token)
        except (ApiError, requests.RequestException) as exc:
            logger.debug("session restore failed: %s", exc)
            self._clear()
            return False
        self._adopt(payload)
        return True

    def login(self, email: str, password: str) -> LoginResult:
        try:
            payload = self.api.login(email, password)
        except ApiError as exc:
            return LoginResult(False, exc.message)
        except requests.RequestException:
            return LoginResult(False, "Network error occurred")
        self._adopt(payload)
        return LoginResult(True, "Login successful", payload.get("data"))

    def refresh(self) -> bool:
        """Renew the access token now; any failure signs the session out."""
        with self._lock:
            refresh_token = self.refresh_token
            generation = self._generation
        try:
            payload = self.api.refresh(refresh_token)
        except (ApiError, requests.RequestException) as exc:
            logger.info("session renewal failed, signing out: %s", exc)
            with self._lock:
                if generation == self._generation:
                    self._cancel_timer()
                    self._clear()
            return False
        return self._adopt(payload, generation)

    def logout(self) -> None:
        """Sign out locally first, then ask the server to forget this device.

        Without a stored refresh token the transport's cookie jar carries the
        credential, so the server is still called whenever a session existed.
        """
        with self._lock:
            refresh_token = self.refresh_token
            had_session = self.is_authenticated or refresh_token is not None
            self._cancel_timer()
            self._clear()
        if not had_session:
            return
        try:
            self.api.logout(refresh_token)
        except (ApiError, requests.RequestException) as exc:
            logger.warning("server logout failed; local session already cleared: %s", exc)

    # request layer

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Call a protected endpoint with the current access token."""
        with self._lock:
            if not self.is_authenticated:
                raise NotAuthenticated("no active session")
            headers = dict(kwargs.pop("headers", None) or {})
            headers.update(self.auth_headers())
        return self.api.request(method, path, headers=headers, **kwargs)

    # internals

    def _adopt(self, payload: Dict[str, Any], generation: Optional[int] = None) -> bool:
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self.identity = payload.get("data")
            self.access_token = payload.get("access_token")
            if payload.get("refresh_token"):
                self.refresh_token = payload["refresh_token"]
            self._schedule_renewal()
            return True

    def _clear(self) -> None:
        with self._lock:
            self._generation += 1
            self.identity = None
            self.access_token = None
            self.refresh_token = None

    def renewal_delay(self, access_token: str) -> float:
        """Seconds until renewal: `safety_margin` before expiry, at most half the remaining life."""
        exp = peek_expiry(access_token)
        if exp is None:
            return MIN_RENEWAL_DELAY
        remaining = exp - self._clock()
        margin = min(self.safety_margin, remaining / 2)
        return max(MIN_RENEWAL_DELAY, remaining - margin)

    def _schedule_renewal(self) -> None:
        self._cancel_timer()
        if not self.access_token:
            return
        timer = self._timer_factory(self.renewal_delay(self.access_token), self._on_timer)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
        self.refresh()

    def _cancel_timer(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending_timer(self):
        return self._timer
