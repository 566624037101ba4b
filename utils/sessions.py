"""
Session lifecycle: registration, login (password or Google), refresh-token
rotation and logout.

Refresh tokens are single use. rotate() consumes the presented token and hands
back a new pair; presenting a consumed token again is treated as reuse and
rejected. Access tokens are never revoked, they simply expire.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.datastructures import FileStorage

from models.credential_store import CredentialStore
from models.user import User
from utils.avatars import remove_avatar, save_avatar
from utils.exceptions import (
    AuthenticationFailed,
    Conflict,
    MissingCredential,
    ProviderUnavailable,
    TokenReuseOrExpired,
    UnknownUser,
)
from utils.security import (
    decode_refresh_token,
    hash_password,
    issue_tokens,
    refresh_token_expiry,
    verify_password,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailLogin:
    email: str
    password: str


@dataclass(frozen=True)
class ProviderLogin:
    credential: str


LoginRequest = Union[EmailLogin, ProviderLogin]


@dataclass(frozen=True)
class SessionCredentials:
    user_id: str
    access_token: str
    refresh_token: str


def _store() -> CredentialStore:
    return CredentialStore()


def register(username: str, email: str, password: str, avatar: FileStorage | None) -> User:
    """Create a password account; the avatar upload is required."""
    if not username or not email or not password or avatar is None or not avatar.filename:
        raise MissingCredential()

    store = _store()
    avatar_dir = current_app.config["AVATAR_DIR"]
    path = save_avatar(avatar, avatar_dir)
    try:
        if store.find_by_email(email) is not None:
            raise Conflict()
        user = store.create(
            username=username,
            email=email,
            password_hash=hash_password(password),
            avatar=path,
        )
    except IntegrityError:
        # lost a race with a concurrent registration of the same e-mail
        remove_avatar(path)
        raise Conflict()
    except Exception:
        remove_avatar(path)
        raise
    logger.info("registered user %s", user.id)
    return user


def login(request: LoginRequest) -> SessionCredentials:
    if isinstance(request, EmailLogin):
        user = _authenticate_password(request)
    elif isinstance(request, ProviderLogin):
        user = _authenticate_provider(request)
    else:
        raise TypeError(f"unsupported login request: {type(request).__name__}")
    return open_session(user)


def _authenticate_password(request: EmailLogin) -> User:
    if not request.email or not request.password:
        raise MissingCredential()
    user = _store().find_by_email(request.email)
    if user is None or not verify_password(request.password, user.password_hash):
        logger.info("password login failed for %s", request.email)
        raise AuthenticationFailed()
    return user


def _authenticate_provider(request: ProviderLogin) -> User:
    if not request.credential:
        raise MissingCredential()
    provider = current_app.extensions["identity_provider"]
    identity = provider.verify(request.credential)

    store = _store()
    user = store.find_by_email(identity.email)
    if user is not None:
        return user

    if not identity.picture or not identity.name:
        raise ProviderUnavailable("Provider profile is missing a name or picture")
    path = provider.download_avatar(identity.picture, current_app.config["AVATAR_DIR"])
    try:
        user = store.create(username=identity.name, email=identity.email, password_hash=None, avatar=path)
    except Exception:
        remove_avatar(path)
        raise
    logger.info("provisioned user %s from google sign-in", user.id)
    return user


def open_session(user: User) -> SessionCredentials:
    """Issue a pair for user and add the refresh token to its set."""
    store = _store()
    store.purge_expired(user.id)
    pair = issue_tokens(user.id)
    store.add_refresh_token(user.id, pair.refresh_token, refresh_token_expiry())
    return SessionCredentials(user.id, pair.access_token, pair.refresh_token)


def _verified_owner(refresh_token: str) -> User:
    decoded = decode_refresh_token(refresh_token)
    user = _store().find_by_id(decoded["sub"])
    if user is None:
        raise UnknownUser()
    return user


def rotate(refresh_token: str) -> SessionCredentials:
    """
    Exchange refresh_token for a new pair.
    Fails with TokenReuseOrExpired if the token was already consumed or revoked.
    """
    if not refresh_token:
        raise MissingCredential()
    user = _verified_owner(refresh_token)
    store = _store()
    pair = issue_tokens(user.id)
    if not store.rotate_refresh_token(user.id, refresh_token, pair.refresh_token, refresh_token_expiry()):
        _on_reuse(store, user)
        raise TokenReuseOrExpired()
    return SessionCredentials(user.id, pair.access_token, pair.refresh_token)


def _on_reuse(store: CredentialStore, user: User) -> None:
    if current_app.config.get("REFRESH_REUSE_REVOKES_ALL"):
        revoked = store.revoke_all_refresh_tokens(user.id)
        logger.warning("refresh token reuse for user %s, revoked %d live tokens", user.id, revoked)
    else:
        logger.warning("refresh token reuse for user %s", user.id)


def logout(refresh_token: str) -> None:
    """Revoke refresh_token. A token that is no longer live fails with TokenReuseOrExpired."""
    if not refresh_token:
        raise MissingCredential()
    user = _verified_owner(refresh_token)
    if not _store().remove_refresh_token(user.id, refresh_token):
        logger.info("logout with dead refresh token for user %s", user.id)
        raise TokenReuseOrExpired()
    logger.info("user %s logged out", user.id)
