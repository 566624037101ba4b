"""
Google sign-in: verifies ID tokens issued to our client id and fetches the
profile picture for accounts created on first login.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import requests
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from utils.avatars import new_avatar_path, remove_avatar
from utils.exceptions import AuthenticationFailed, ProviderUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderIdentity:
    email: str
    name: str | None
    picture: str | None


class GoogleIdentityProvider:
    def __init__(self, client_id: str | None, timeout: float = 10.0):
        self.client_id = client_id
        self.timeout = timeout
        self._http = requests.Session()

    def verify(self, credential: str) -> ProviderIdentity:
        if not self.client_id:
            raise ProviderUnavailable("Google sign-in is not configured")
        try:
            payload = google_id_token.verify_oauth2_token(
                credential,
                google_requests.Request(session=self._http),
                audience=self.client_id,
            )
        except ValueError as exc:
            logger.info("google credential rejected: %s", exc)
            raise AuthenticationFailed()

        email = payload.get("email")
        if not email or payload.get("email_verified") is False:
            raise AuthenticationFailed("Google account has no verified e-mail")
        return ProviderIdentity(email=email, name=payload.get("name"), picture=payload.get("picture"))

    def download_avatar(self, url: str, directory: str) -> str:
        """Store the picture at url under directory; returns the stored path."""
        path = new_avatar_path(directory, ".jpg")
        try:
            with self._http.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                # "x" mode: never overwrite another user's avatar
                with open(path, "xb") as fh:
                    for chunk in response.iter_content(chunk_size=64 * 1024):
                        fh.write(chunk)
        except requests.RequestException as exc:
            logger.warning("profile picture download failed: %s", exc)
            remove_avatar(path)
            raise ProviderUnavailable("Could not fetch profile picture")
        return path
