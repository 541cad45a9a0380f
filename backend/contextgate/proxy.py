"""Streaming proxy — forwards chat requests to Copilot with injected context.

The outbound payload is the client's body with three system messages prepended,
`stream` forced on and `model` resolved. Every other field is forwarded as-is.
The upstream response is relayed as raw bytes: status, headers and SSE framing
reach the caller exactly as Copilot sent them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import anyio
import httpx
from pydantic import ValidationError
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from contextgate.config import Settings
from contextgate.errors import MalformedPayload, MissingToken, UpstreamUnreachable
from contextgate.identity import resolve_user
from contextgate.models import ChatRequest

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-GitHub-Token"


def extract_token(header_token: str | None, cookie_token: str | None) -> str:
    """Pick the bearer token, preferring the explicit header over the cookie."""
    token = header_token or cookie_token
    if not token:
        raise MissingToken()
    return token


def parse_chat_payload(raw: bytes) -> dict[str, Any]:
    """Decode and check the client body. The returned dict is the original, unmodified."""
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise MalformedPayload("Invalid payload: body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise MalformedPayload("Invalid payload: expected a JSON object")
    try:
        ChatRequest.model_validate(payload)
    except ValidationError as e:
        raise MalformedPayload() from e
    return payload


def resolve_model(payload: dict[str, Any], default_model: str) -> str:
    """Body `model`, then `config.model`, then the process default."""
    if payload.get("model"):
        return payload["model"]
    config = payload.get("config") or {}
    if config.get("model"):
        return config["model"]
    return default_model


def build_system_prompts(login: str, domain_prompt: str, project_context: str) -> list[dict[str, str]]:
    return [
        {
            "role": "system",
            "content": f"Start every response with the user's handle: @{login}.",
        },
        {
            "role": "system",
            "content": domain_prompt,
        },
        {
            "role": "system",
            "content": f"Project-specific context:\n{project_context.strip()}",
        },
    ]


def build_outbound_request(
    payload: dict[str, Any],
    login: str,
    settings: Settings,
    project_context: str,
) -> dict[str, Any]:
    system_prompts = build_system_prompts(login, settings.domain_prompt, project_context)
    return {
        **payload,
        "messages": [*system_prompts, *payload["messages"]],
        "model": resolve_model(payload, settings.default_model),
        "stream": True,
    }


async def open_upstream(
    client: httpx.AsyncClient,
    settings: Settings,
    token: str,
    outbound: dict[str, Any],
) -> httpx.Response:
    """Send the outbound request and return once upstream headers have arrived."""
    request = client.build_request(
        "POST",
        f"{settings.copilot_api_url}/chat/completions",
        json=outbound,
        headers={"Authorization": f"Bearer {token}"},
    )
    try:
        upstream = await client.send(request, stream=True)
    except httpx.HTTPError as e:
        logger.error("Copilot API unreachable: %s", type(e).__name__)
        raise UpstreamUnreachable() from e
    logger.info("Copilot API responded %d (model=%s)", upstream.status_code, outbound["model"])
    return upstream


async def relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Yield upstream body bytes as they arrive, undecoded."""
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        # Bytes already sent stay sent; the caller sees a truncated stream.
        logger.warning("Copilot stream interrupted: %s", type(e).__name__)


def relay_headers(upstream: httpx.Response) -> list[tuple[bytes, bytes]]:
    """Upstream headers in order, duplicates kept, names lowercased for ASGI."""
    headers = [(name.lower(), value) for name, value in upstream.headers.raw]
    if not any(name == b"content-type" for name, _ in headers):
        headers.append((b"content-type", b"text/event-stream"))
    return headers


class UpstreamRelayResponse(StreamingResponse):
    """Streams an open httpx response to the caller and always closes it.

    The upstream connection is released after the last byte, on a forwarding
    error, and when the caller disconnects or the request is cancelled.
    """

    def __init__(self, upstream: httpx.Response) -> None:
        super().__init__(relay_body(upstream), status_code=upstream.status_code)
        self.upstream = upstream
        self.raw_headers = relay_headers(upstream)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                await self.upstream.aclose()


async def handle_chat_request(
    client: httpx.AsyncClient,
    settings: Settings,
    project_context: str,
    *,
    header_token: str | None,
    cookie_token: str | None,
    body: bytes,
) -> UpstreamRelayResponse:
    """Authenticate, enrich and forward one chat request.

    The token is checked against GitHub first, so an unauthenticated caller
    gets 401 whatever the body. The payload is checked before Copilot is called.
    """
    token = extract_token(header_token, cookie_token)
    login = await resolve_user(client, settings, token)
    payload = parse_chat_payload(body)
    outbound = build_outbound_request(payload, login, settings, project_context)
    upstream = await open_upstream(client, settings, token, outbound)
    return UpstreamRelayResponse(upstream)
