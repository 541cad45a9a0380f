"""Identity resolver — turns a GitHub bearer token into a user handle.

GitHub has no separate token-introspection endpoint usable here, so a
successful GET /user doubles as the liveness check for the token.
"""

from __future__ import annotations

import logging

import httpx

from contextgate.config import Settings
from contextgate.errors import InvalidToken

logger = logging.getLogger(__name__)


async def resolve_user(client: httpx.AsyncClient, settings: Settings, token: str) -> str:
    """Return the GitHub login for `token`. Raises InvalidToken on any failure."""
    try:
        response = await client.get(
            f"{settings.github_api_url}/user",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        logger.warning("GitHub user lookup failed: %s", type(e).__name__)
        raise InvalidToken() from e

    if not response.is_success:
        logger.warning("GitHub user lookup returned %d", response.status_code)
        raise InvalidToken()

    try:
        data = response.json()
    except ValueError as e:
        raise InvalidToken() from e
    login = data.get("login") if isinstance(data, dict) else None
    if not isinstance(login, str) or not login:
        raise InvalidToken()

    logger.info("User: @%s", login)
    return login
