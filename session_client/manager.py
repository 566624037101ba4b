"""
SessionManager keeps at most one session alive for a client.

All state changes go through one slot (`credentials`) and bump a generation
counter. Login and renewal responses are applied only if the generation they
started under is still current, so e.g. a renewal answered after logout is
dropped instead of resurrecting the session.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

import httpx

from session_client.api import ApiError, AuthApi, Credentials, EmailLogin, LoginRequest, SessionRejected
from session_client.storage import MemoryTokenStore, TokenStore

logger = logging.getLogger(__name__)

# inside the server's default 300 s access-token lifetime, so the cookie never lapses
DEFAULT_RENEW_INTERVAL = 240.0


class SessionManager:
    def __init__(
        self,
        api: AuthApi,
        persistent_store: TokenStore,
        session_store: TokenStore | None = None,
        renew_interval: float = DEFAULT_RENEW_INTERVAL,
    ):
        self.api = api
        self.persistent_store = persistent_store
        self.session_store = session_store or MemoryTokenStore()
        self.renew_interval = renew_interval

        self.credentials: Credentials | None = None
        self.remember_me = False
        self._generation = 0
        self._login_in_flight = False
        self._renew_task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self.credentials is not None

    @property
    def generation(self) -> int:
        return self._generation

    async def __aenter__(self) -> "SessionManager":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def start(self) -> None:
        """Resume a remembered session (one rotation attempt) and start the renewal task."""
        try:
            token = self.persistent_store.load()
            if token and not self.active and not self._login_in_flight:
                await self._resume(token)
        finally:
            if self._renew_task is None:
                self._renew_task = asyncio.create_task(self._renew_periodically())

    async def _resume(self, token: str) -> None:
        # the slot is busy until the rotation answers; login() is a no-op meanwhile
        self._login_in_flight = True
        generation = self._generation
        try:
            creds = await self.api.refresh(token)
        except ApiError as exc:
            logger.info("remembered session rejected (%s), clearing it", exc.status)
            if generation == self._generation:
                self._clear()
            return
        except (httpx.TransportError, httpx.HTTPStatusError) as exc:
            # server unreachable or failing: keep the token for the next start
            logger.warning("could not resume remembered session: %s", exc)
            return
        finally:
            self._login_in_flight = False
        if generation == self._generation:
            self._adopt(creds, remember_me=True)

    async def login(self, request: LoginRequest, remember_me: bool = False) -> Credentials | None:
        """Open a session; a no-op returning None if one is active or being opened."""
        if self.active or self._login_in_flight:
            return None
        self._login_in_flight = True
        generation = self._generation
        try:
            creds = await self.api.login(request)
        finally:
            self._login_in_flight = False
        if generation != self._generation:
            logger.info("discarding login response from a superseded session")
            return None
        self._adopt(creds, remember_me)
        return creds

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        avatar: tuple[str, bytes, str],
        remember_me: bool = False,
    ) -> Credentials | None:
        if self.active or self._login_in_flight:
            return None
        self._login_in_flight = True
        try:
            await self.api.register(username, email, password, avatar)
        finally:
            self._login_in_flight = False
        return await self.login(EmailLogin(email=email, password=password), remember_me)

    async def renew(self) -> bool:
        """Rotate the current refresh token. Returns True when new credentials were adopted."""
        creds = self.credentials
        if creds is None:
            return False
        generation = self._generation
        try:
            new_creds = await self.api.refresh(creds.refresh_token)
        except SessionRejected as exc:
            if generation == self._generation:
                logger.info("session rejected on renewal (%s), signing out", exc.error)
                self._clear()
            return False
        except httpx.TransportError as exc:
            # keep the session, the next tick tries again
            logger.warning("session renewal failed: %s", exc)
            return False
        if generation != self._generation:
            logger.info("discarding renewal response from a superseded session")
            return False
        self._adopt(new_creds, self.remember_me)
        return True

    async def logout(self) -> None:
        """Clear local state, then revoke the refresh token on the server."""
        creds = self.credentials
        self._clear()
        if creds is None:
            return
        try:
            await self.api.logout(creds.refresh_token)
        except (ApiError, httpx.HTTPError) as exc:
            logger.info("server logout failed, local session cleared anyway: %s", exc)

    async def close(self) -> None:
        task, self._renew_task = self._renew_task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await self.api.aclose()

    async def _renew_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.renew_interval)
            if not self.active:
                continue
            try:
                await self.renew()
            except (ApiError, httpx.HTTPError) as exc:
                logger.warning("session renewal error: %s", exc)

    def _adopt(self, creds: Credentials, remember_me: bool) -> None:
        self._generation += 1
        self.credentials = creds
        self.remember_me = remember_me
        if remember_me:
            self.persistent_store.save(creds.refresh_token)
            self.session_store.clear()
        else:
            self.session_store.save(creds.refresh_token)
            self.persistent_store.clear()

    def _clear(self) -> None:
        self._generation += 1
        self.credentials = None
        self.remember_me = False
        self.persistent_store.clear()
        self.session_store.clear()
