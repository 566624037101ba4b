"""
Error taxonomy for the credential/session core.

Every class carries the HTTP status and the stable error code the API renders
(see api.errors). Token failures all share 403 so a client reacts the same way
to them (drop the session, log in again); the subclasses keep the reasons apart
in logs and tests.
"""
from __future__ import annotations


class AuthError(Exception):
    status = 400
    error = "BAD_REQUEST"
    message = "Bad request"

    def __init__(self, message: str | None = None, details: dict | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class MissingCredential(AuthError):
    status = 400
    error = "MISSING_CREDENTIAL"
    message = "Missing Arguments"


class UnsupportedMediaType(AuthError):
    status = 400
    error = "UNSUPPORTED_FILE_TYPE"
    message = "File Type Unsupported"


class AuthenticationFailed(AuthError):
    status = 401
    error = "AUTHENTICATION_FAILED"
    message = "Authentication failed"


class MissingToken(AuthError):
    status = 401
    error = "MISSING_TOKEN"
    message = "Missing Token"


class InvalidToken(AuthError):
    status = 403
    error = "INVALID_TOKEN"
    message = "Invalid Request"


class ExpiredToken(InvalidToken):
    error = "TOKEN_EXPIRED"


class TokenReuseOrExpired(InvalidToken):
    error = "TOKEN_REUSED"


class UnknownUser(InvalidToken):
    error = "UNKNOWN_USER"


class Conflict(AuthError):
    status = 409
    error = "CONFLICT"
    message = "Email Taken"


class ProviderUnavailable(AuthError):
    status = 502
    error = "PROVIDER_UNAVAILABLE"
    message = "Identity provider unavailable"


class ConfigurationError(RuntimeError):
    """Signing keys or other settings are unusable; the app must not start."""
