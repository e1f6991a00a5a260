"""Pytest configuration and fixtures for identity lookup tests."""

from __future__ import annotations

import asyncio
import base64
import hashlib
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from identity_lookup import IdentityServerClient

BASE_URL = "https://id.example.org"
PREFIX = "/_matrix/identity/v2"
ACCESS_TOKEN = "is-access-token"

OPENID_TOKEN = {
    "access_token": "openid-token",
    "token_type": "Bearer",
    "matrix_server_name": "example.org",
    "expires_in": 3600,
}
VALIDATION_SID = "sid-1"
SMS_CODE = "123456"

_UNSET = object()


def _error(status_code: int, errcode: str, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"errcode": errcode, "error": error})


class FakeIdentityServer:
    """In-process identity server speaking the v2 hashed lookup API.

    Hashes are computed here with hashlib directly so tests exercise the
    client against an independent implementation.
    """

    def __init__(self):
        self.pepper = "matrixrocks"
        self.algorithms = ["none", "sha256"]
        # (lowercase address, medium) -> mxid
        self.users: dict[tuple[str, str], str] = {}
        # Raw bodies returned instead of the computed responses
        self.hash_details_response: Any = _UNSET
        self.lookup_response: Any = _UNSET
        self.lookup_status: int | None = None
        self.lookup_requests: list[dict] = []
        self.validation_requests: list[tuple[str, dict]] = []
        self.hash_details_calls = 0
        self.app = self._build_app()

    def add_user(self, address: str, medium: str, mxid: str) -> None:
        self.users[(address.lower(), medium.lower())] = mxid

    def _value(self, address: str, medium: str, algorithm: str) -> str:
        plain = f"{address} {medium}"
        if algorithm == "none":
            return plain
        digest = hashlib.sha256(f"{plain} {self.pepper}".encode()).digest()
        return base64.urlsafe_b64encode(digest).decode().rstrip("=")

    def _authorized(self, authorization: str | None) -> bool:
        return authorization == f"Bearer {ACCESS_TOKEN}"

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Fake Identity Server")

        @app.get(f"{PREFIX}/hash_details")
        async def hash_details(authorization: str | None = Header(default=None)):
            if not self._authorized(authorization):
                return _error(401, "M_UNAUTHORIZED", "Unrecognised access token")
            self.hash_details_calls += 1
            if self.hash_details_response is not _UNSET:
                return JSONResponse(content=self.hash_details_response)
            return {"lookup_pepper": self.pepper, "algorithms": self.algorithms}

        @app.post(f"{PREFIX}/lookup")
        async def lookup(request: Request, authorization: str | None = Header(default=None)):
            if not self._authorized(authorization):
                return _error(401, "M_UNAUTHORIZED", "Unrecognised access token")
            body = await request.json()
            self.lookup_requests.append(body)
            if self.lookup_status is not None:
                return _error(self.lookup_status, "M_UNKNOWN", "Internal server error")
            if self.lookup_response is not _UNSET:
                return JSONResponse(content=self.lookup_response)
            if body.get("pepper") != self.pepper:
                return _error(400, "M_INVALID_PEPPER", "Unknown or invalid pepper")
            algorithm = body.get("algorithm")
            if algorithm not in self.algorithms:
                return _error(400, "M_INVALID_PARAM", "Unsupported algorithm")

            known = {
                self._value(address, medium, algorithm): mxid
                for (address, medium), mxid in self.users.items()
            }
            mappings = {value: known[value] for value in body["addresses"] if value in known}
            return {"mappings": mappings}

        @app.get(f"{PREFIX}/account")
        async def account(authorization: str | None = Header(default=None)):
            if not self._authorized(authorization):
                return _error(401, "M_UNAUTHORIZED", "Unrecognised access token")
            return {"user_id": "@bob:example.org"}

        @app.post(f"{PREFIX}/account/register")
        async def register(request: Request):
            body = await request.json()
            if body.get("access_token") != OPENID_TOKEN["access_token"]:
                return _error(401, "M_UNAUTHORIZED", "Invalid OpenID token")
            return {"token": ACCESS_TOKEN}

        @app.post(f"{PREFIX}/validate/{{medium}}/requestToken")
        async def request_token(
            medium: str, request: Request, authorization: str | None = Header(default=None)
        ):
            if not self._authorized(authorization):
                return _error(401, "M_UNAUTHORIZED", "Unrecognised access token")
            body = await request.json()
            self.validation_requests.append((medium, body))
            return {"sid": VALIDATION_SID}

        @app.post(f"{PREFIX}/validate/msisdn/submitToken")
        async def submit_token(request: Request, authorization: str | None = Header(default=None)):
            if not self._authorized(authorization):
                return _error(401, "M_UNAUTHORIZED", "Unrecognised access token")
            body = await request.json()
            self.validation_requests.append(("submit", body))
            if body.get("sid") != VALIDATION_SID or body.get("token") != SMS_CODE:
                return _error(400, "M_INVALID_PARAM", "Invalid token")
            return {"success": True}

        return app


@pytest.fixture
def identity_server():
    """Fresh fake identity server per test."""
    return FakeIdentityServer()


@pytest.fixture
def call(identity_server):
    """Run one IdentityServerClient method against the fake server."""

    def _call(method: str, *args, **kwargs):
        async def _run():
            async with IdentityServerClient(
                BASE_URL, http_transport=httpx.ASGITransport(app=identity_server.app)
            ) as client:
                return await getattr(client, method)(*args, **kwargs)

        return asyncio.run(_run())

    return _call


@pytest.fixture(autouse=True)
def clear_identity_env(monkeypatch):
    """Keep tests independent of the caller's environment."""
    for var in ("IDENTITY_SERVER_URL", "IDENTITY_SERVER_TIMEOUT", "IDENTITY_SERVER_USER_AGENT"):
        monkeypatch.delenv(var, raising=False)
