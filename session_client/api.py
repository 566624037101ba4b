"""
Async HTTP client for the session endpoints of the API.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import httpx


@dataclass(frozen=True)
class Credentials:
    user_id: str
    access_token: str
    refresh_token: str

    @classmethod
    def from_json(cls, data: dict) -> "Credentials":
        return cls(
            user_id=data["userId"],
            access_token=data["accessToken"],
            refresh_token=data["refreshToken"],
        )


@dataclass(frozen=True)
class EmailLogin:
    email: str
    password: str


@dataclass(frozen=True)
class ProviderLogin:
    credential: str


LoginRequest = Union[EmailLogin, ProviderLogin]


class ApiError(Exception):
    def __init__(self, status: int, error: str | None = None, message: str | None = None):
        super().__init__(f"{status} {error or ''}: {message or ''}".strip())
        self.status = status
        self.error = error
        self.message = message


class SessionRejected(ApiError):
    """The refresh token is invalid, reused or expired; the session is over."""


class LoginRejected(ApiError):
    """Wrong e-mail/password or a credential the identity provider refused."""


class RequestRejected(ApiError):
    """Malformed request (missing fields, unsupported avatar, e-mail taken)."""


class AuthApi:
    """
    Thin wrapper around the /users session routes.

    The underlying httpx client keeps the access-token cookie the server sets,
    so other requests made through `http` are authenticated automatically.
    """

    def __init__(
        self,
        base_url: str,
        *,
        prefix: str = "/api/v1/users",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.prefix = prefix.rstrip("/")
        self.http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def login(self, request: LoginRequest) -> Credentials:
        if isinstance(request, EmailLogin):
            response = await self.http.post(
                f"{self.prefix}/login", json={"email": request.email, "password": request.password}
            )
        elif isinstance(request, ProviderLogin):
            response = await self.http.post(f"{self.prefix}/google-login", json={"credential": request.credential})
        else:
            raise TypeError(f"unsupported login request: {type(request).__name__}")
        _raise_for_status(response, rejected=LoginRejected)
        return Credentials.from_json(response.json())

    async def register(
        self, username: str, email: str, password: str, avatar: tuple[str, bytes, str]
    ) -> dict:
        """avatar is (filename, content, mimetype)."""
        response = await self.http.post(
            f"{self.prefix}/register",
            data={"username": username, "email": email, "password": password},
            files={"avatar": avatar},
        )
        _raise_for_status(response, rejected=LoginRejected)
        return response.json()

    async def refresh(self, refresh_token: str) -> Credentials:
        response = await self.http.post(f"{self.prefix}/refresh-token", json={"refreshToken": refresh_token})
        _raise_for_status(response, rejected=SessionRejected)
        return Credentials.from_json(response.json())

    async def logout(self, refresh_token: str) -> None:
        response = await self.http.post(f"{self.prefix}/logout", json={"refreshToken": refresh_token})
        _raise_for_status(response, rejected=SessionRejected)

    async def aclose(self) -> None:
        await self.http.aclose()


def _raise_for_status(response: httpx.Response, rejected: type[ApiError]) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    error, message = body.get("error"), body.get("message")
    if response.status_code in (401, 403):
        raise rejected(response.status_code, error, message)
    if response.status_code in (400, 409):
        raise RequestRejected(response.status_code, error, message)
    response.raise_for_status()
