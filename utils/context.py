from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import g


@dataclass(frozen=True)
class AuthContext:
    """Verified identity of the caller, set by jwt_required for the current request."""
    user_id: str
    token_id: str | None
    expires_at: datetime


def current_auth() -> AuthContext:
    auth = g.get("auth")
    if auth is None:
        raise RuntimeError("current_auth() used outside a jwt_required view")
    return auth
