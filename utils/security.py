"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (access and refresh tokens use distinct secrets)
- JTI generation for token identifiers
- refresh token fingerprints for storage
"""
from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from flask import current_app

from utils.exceptions import ConfigurationError, ExpiredToken, InvalidToken


ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"

_SECRET_KEYS = {ACCESS: "ACCESS_TOKEN_SECRET", REFRESH: "REFRESH_TOKEN_SECRET"}
_EXPIRY_KEYS = {ACCESS: "ACCESS_TOKEN_EXPIRES", REFRESH: "REFRESH_TOKEN_EXPIRES"}


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a plaintext password using argon2.

    Accounts created through an identity provider have no hash and never match.
    """
    if not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def fingerprint(token: str) -> str:
    """SHA-256 hex digest under which a refresh token is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _secret(token_type: str) -> str:
    key = _SECRET_KEYS[token_type]
    secret = current_app.config.get(key)
    if not secret:
        raise ConfigurationError(f"{key} is not configured")
    return secret


def validate_signing_config(config) -> None:
    """
    Fail fast on signing-key misconfiguration.
    Called by the app factory so a broken deployment never serves a request.
    """
    access = config.get("ACCESS_TOKEN_SECRET")
    refresh = config.get("REFRESH_TOKEN_SECRET")
    if not access or not refresh:
        raise ConfigurationError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must both be set")
    if access == refresh:
        raise ConfigurationError("access and refresh tokens must be signed with different secrets")
    if not config.get("JWT_ALGORITHM", "").startswith("HS"):
        raise ConfigurationError("only HMAC signing algorithms are supported")


def _create_token(subject: str, token_type: str) -> str:
    now = _now()
    payload = {
        "sub": str(subject),
        "iat": int(now.timestamp()),
        "exp": now + current_app.config[_EXPIRY_KEYS[token_type]],
        "type": token_type,
        "jti": generate_jti(),
    }
    return jwt.encode(payload, _secret(token_type), algorithm=current_app.config["JWT_ALGORITHM"])


def create_access_token(subject: str) -> str:
    """Short-lived, stateless token proving recent authentication."""
    return _create_token(subject, ACCESS)


def create_refresh_token(subject: str) -> str:
    """Long-lived token; the random jti keeps tokens issued in the same instant distinct."""
    return _create_token(subject, REFRESH)


def issue_tokens(user_id: str) -> TokenPair:
    """
    Mint an access/refresh pair for user_id.
    Pure: persisting the refresh token is the caller's job.
    """
    return TokenPair(create_access_token(user_id), create_refresh_token(user_id))


def refresh_token_expiry() -> datetime:
    return _now() + current_app.config["REFRESH_TOKEN_EXPIRES"]


def decode_token(token: str, expected_type: str = ACCESS) -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises ExpiredToken / InvalidToken on expired
    or bad signature/malformed jwt.
    expected type must be "access" or "refresh".
    """
    try:
        decoded = jwt.decode(
            token,
            _secret(expected_type),
            algorithms=[current_app.config["JWT_ALGORITHM"]],
            options={"require": ["sub", "exp", "type"]},
        )
    except jwt.ExpiredSignatureError:
        raise ExpiredToken("Token expired")
    except jwt.InvalidTokenError as exc:
        raise InvalidToken(f"Invalid token: {exc}")

    if decoded.get("type") != expected_type:
        raise InvalidToken("Wrong token type")
    return decoded


def decode_access_token(token: str) -> Dict[str, Any]:
    return decode_token(token, ACCESS)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    return decode_token(token, REFRESH)
