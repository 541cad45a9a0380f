"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Callable
from http.cookies import SimpleCookie

import fakeredis.aioredis
import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request
from starlette.responses import Response

from contextgate.config import Settings, get_settings
from contextgate.deps import (
    get_http_client,
    get_project_context,
    get_retriever,
    get_session_store,
)
from contextgate.main import app
from contextgate.retrieval import ContextRetriever
from contextgate.session_store import CookieSessionStore, SessionStore

PROJECT_CONTEXT = """\
Project "Hermes"
• Stack: Python, Kafka
• Domain: ledger reconciliation
• Goal: zero lost events"""

GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
COPILOT_URL = "https://api.githubcopilot.com/chat/completions"


def make_settings(**overrides) -> Settings:
    """Settings with the required OAuth values filled in and no .env lookup."""
    values = {
        "github_client_id": "test-client-id",
        "github_client_secret": "test-client-secret",
        "public_base_url": "http://test",
        "cookie_secure": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Fake GitHub / Copilot upstream (httpx.MockTransport)
# ---------------------------------------------------------------------------


def _bare_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


class ChunkStream(httpx.AsyncByteStream):
    """Response body read chunk by chunk, as from a network connection."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


def streamed_response(status_code: int, headers, *chunks: bytes) -> httpx.Response:
    return httpx.Response(status_code, headers=headers, stream=ChunkStream(*chunks))


class FakeUpstream:
    """Routes outbound httpx requests to canned handlers and records them.

    Unrouted URLs fail with a ConnectError, like an unreachable host.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def route(self, method: str, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[(method, url)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, _bare_url(request))
        handler = self._routes.get(key)
        if handler is None:
            raise httpx.ConnectError("connection refused", request=request)
        return handler(request)

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [c for c in self.calls if _bare_url(c) == url]

    def github_user(self, login: str = "octocat") -> None:
        self.route(
            "GET",
            GITHUB_USER_URL,
            lambda request: httpx.Response(200, json={"login": login, "id": 1}),
        )

    def copilot_stream(self, *chunks: bytes, status_code: int = 200, headers: dict | None = None) -> None:
        self.route(
            "POST",
            COPILOT_URL,
            lambda request: streamed_response(
                status_code,
                headers or {"content-type": "text/event-stream"},
                *chunks,
            ),
        )


def outbound_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def make_request(cookies: dict[str, str] | None = None) -> Request:
    """A bare Starlette request carrying the given cookies."""
    headers = []
    if cookies:
        header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", header.encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def response_cookies(response: Response | httpx.Response) -> dict[str, SimpleCookie]:
    """Parse every Set-Cookie header of a response, keyed by cookie name."""
    parsed: dict[str, SimpleCookie] = {}
    if isinstance(response, httpx.Response):
        headers = response.headers.get_list("set-cookie")
    else:
        headers = response.headers.getlist("set-cookie")
    for header in headers:
        cookie = SimpleCookie()
        cookie.load(header)
        for name in cookie:
            parsed[name] = cookie
    return parsed


def cookie_value(response: Response | httpx.Response, name: str) -> str | None:
    cookies = response_cookies(response)
    return cookies[name][name].value if name in cookies else None


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def http_client(upstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handle)) as c:
        yield c


@pytest.fixture
def session_store() -> SessionStore:
    return CookieSessionStore(secure=False)


@pytest.fixture
def retriever():
    return ContextRetriever(PROJECT_CONTEXT)


@pytest.fixture
def overrides(settings, http_client, session_store, retriever):
    """Point every app dependency at test doubles."""
    app.dependency_overrides.update({
        get_settings: lambda: settings,
        get_http_client: lambda: http_client,
        get_project_context: lambda: PROJECT_CONTEXT,
        get_session_store: lambda: session_store,
        get_retriever: lambda: retriever,
    })
    yield app.dependency_overrides
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def fake_redis():
    fake = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield fake
    await fake.aclose()
