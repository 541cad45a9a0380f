"""GitHub OAuth authorization-code flow.

The routes in `contextgate.routes.auth` own the cookies; this module owns the
protocol: state generation and checking, the authorize URL, and the code
exchange.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from urllib.parse import urlencode

import httpx

from contextgate.config import Settings
from contextgate.errors import InvalidState, TokenExchangeFailed

logger = logging.getLogger(__name__)

STATE_KEY = "oauth_state"
TOKEN_COOKIE = "github_token"


def new_state() -> str:
    """Generate an unguessable, single-use anti-CSRF state value."""
    return secrets.token_urlsafe(32)


def authorize_url(settings: Settings, state: str) -> str:
    query = urlencode({
        "client_id": settings.github_client_id,
        "redirect_uri": settings.callback_url,
        "state": state,
        "scope": settings.oauth_scope,
    })
    return f"{settings.github_url}/login/oauth/authorize?{query}"


def validate_state(code: str | None, returned_state: str | None, saved_state: str | None) -> str:
    """Check the callback parameters against the saved state. Returns the code."""
    if not code or not returned_state or not saved_state:
        raise InvalidState()
    if not hmac.compare_digest(returned_state.encode(), saved_state.encode()):
        raise InvalidState()
    return code


async def exchange_code(client: httpx.AsyncClient, settings: Settings, code: str) -> str:
    """Exchange an authorization code for an access token.

    GitHub reports most failures (bad or expired code, wrong secret) as a 200
    response carrying an `error` field, so the body is checked as well as the
    status.
    """
    try:
        response = await client.post(
            f"{settings.github_url}/login/oauth/access_token",
            data={
                "client_id": settings.github_client_id,
                "client_secret": settings.github_client_secret,
                "code": code,
                "redirect_uri": settings.callback_url,
            },
            headers={"Accept": "application/json"},
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        logger.error("Token exchange request failed: %s", type(e).__name__)
        raise TokenExchangeFailed() from e

    if not response.is_success:
        logger.error("Token exchange returned %d", response.status_code)
        raise TokenExchangeFailed()

    try:
        data = response.json()
    except ValueError as e:
        logger.error("Token exchange returned a non-JSON body")
        raise TokenExchangeFailed() from e

    if not isinstance(data, dict):
        raise TokenExchangeFailed()
    if data.get("error"):
        logger.error("Token exchange rejected: %s", data["error"])
        raise TokenExchangeFailed()

    token = data.get("access_token")
    if not isinstance(token, str) or not token:
        logger.error("Token exchange response had no access_token")
        raise TokenExchangeFailed()
    return token
