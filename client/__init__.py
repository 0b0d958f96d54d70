"""Client-side session management for the auth API."""
from client.api import ApiError, AuthApiClient
from client.session import ClientSession, LoginResult, NotAuthenticated

__all__ = ["ApiError", "AuthApiClient", "ClientSession", "LoginResult", "NotAuthenticated"]
