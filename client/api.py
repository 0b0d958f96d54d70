"""
HTTP transport for the auth endpoints, built on requests.

Every call carries a timeout so a hung server cannot wedge the caller.
Non-2xx responses raise ApiError; network failures surface as
requests.RequestException.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import requests

DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    def __init__(self, status: int, payload: Optional[Dict[str, Any]] = None):
        self.status = status
        self.payload = payload or {}
        super().__init__(f"{status}: {self.message}")

    @property
    def message(self) -> str:
        return str(self.payload.get("message") or "Request failed")


class AuthApiClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        http: Optional[requests.Session] = None,
        refresh_cookie_name: str = "refresh_token",
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()
        self.refresh_cookie_name = refresh_cookie_name

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        kwargs.setdefault("timeout", self.timeout)
        response = self.http.request(method, self.url(path), **kwargs)
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not response.ok:
            raise ApiError(response.status_code, payload)
        return payload

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._send("POST", "/auth/login", json={"email": email, "password": password})

    def refresh(self, refresh_token: Optional[str]) -> Dict[str, Any]:
        body = {"refresh_token": refresh_token} if refresh_token else {}
        return self._send("POST", "/auth/refresh", json=body)

    def logout(self, refresh_token: Optional[str]) -> Dict[str, Any]:
        body = {"refresh_token": refresh_token} if refresh_token else {}
        return self._send("POST", "/auth/logout", json=body)

    def whoami(self, refresh_token: Optional[str] = None, access_token: Optional[str] = None) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        cookies = {self.refresh_cookie_name: refresh_token} if refresh_token else None
        return self._send("GET", "/auth/me", headers=headers, cookies=cookies)

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Raw request for protected endpoints; the caller inspects the response."""
        kwargs.setdefault("timeout", self.timeout)
        return self.http.request(method, self.url(path), **kwargs)
