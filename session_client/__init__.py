"""
Client-side session handling: log in, keep the session renewed in the
background, remember it across restarts when asked to.
"""
from session_client.api import (
    ApiError,
    AuthApi,
    Credentials,
    EmailLogin,
    LoginRejected,
    ProviderLogin,
    RequestRejected,
    SessionRejected,
)
from session_client.manager import SessionManager
from session_client.storage import FileTokenStore, MemoryTokenStore, TokenStore

__all__ = [
    "ApiError",
    "AuthApi",
    "Credentials",
    "EmailLogin",
    "FileTokenStore",
    "LoginRejected",
    "MemoryTokenStore",
    "ProviderLogin",
    "RequestRejected",
    "SessionManager",
    "SessionRejected",
    "TokenStore",
]
