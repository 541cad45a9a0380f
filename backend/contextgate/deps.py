"""FastAPI dependency providers.

Startup state lives on `app.state` and reaches routes only through these
functions, so tests swap any of it with `app.dependency_overrides`.
"""

from __future__ import annotations

import httpx
from fastapi import Depends, Request

from contextgate.config import Settings, get_settings
from contextgate.retrieval import Retriever
from contextgate.session_store import CookieSessionStore, SessionStore
from contextgate.tool_protocol import ToolProtocolHandler


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_project_context(request: Request) -> str:
    return request.app.state.project_context


def get_session_store(request: Request) -> SessionStore:
    """Store for the OAuth state value (cookie, memory or redis backed)."""
    return request.app.state.session_store


def get_token_store(settings: Settings = Depends(get_settings)) -> SessionStore:
    """Store for the access token. Always cookies: tokens are never kept server-side."""
    return CookieSessionStore(secure=settings.cookie_secure)


def get_retriever(request: Request) -> Retriever:
    return request.app.state.retriever


def get_tool_handler(retriever: Retriever = Depends(get_retriever)) -> ToolProtocolHandler:
    return ToolProtocolHandler(retriever)
