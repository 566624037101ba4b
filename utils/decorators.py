from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import wraps

from flask import current_app, g, request

from utils.context import AuthContext
from utils.exceptions import ExpiredToken, InvalidToken, MissingToken
from utils.security import decode_access_token

logger = logging.getLogger(__name__)


def _token_from_request() -> str | None:
    token = request.cookies.get(current_app.config["ACCESS_TOKEN_COOKIE"])
    if token:
        return token
    # Swagger UI and API tools send the token as a header
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def validate_request_token() -> AuthContext:
    """
    Verify the caller's access token and return its identity.
    Stateless: signature and expiry only, the credential store is not consulted.
    """
    token = _token_from_request()
    if token is None:
        logger.info("access token missing for %s %s", request.method, request.path)
        raise MissingToken()
    try:
        decoded = decode_access_token(token)
    except ExpiredToken:
        logger.info("access token expired for %s %s", request.method, request.path)
        raise
    except InvalidToken as exc:
        logger.info("access token rejected for %s %s: %s", request.method, request.path, exc)
        raise
    return AuthContext(
        user_id=decoded["sub"],
        token_id=decoded.get("jti"),
        expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
    )


def jwt_required():
    """Gate a view behind a valid access token; the identity lands in g.auth."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            g.auth = validate_request_token()
            return fn(*args, **kwargs)

        return wrapper

    return decorator
