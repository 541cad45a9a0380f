"""GitHub login — authorization redirect, callback, logout."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse, RedirectResponse

from contextgate.config import Settings, get_settings
from contextgate.deps import get_http_client, get_session_store, get_token_store
from contextgate.errors import GatewayError
from contextgate.oauth import (
    STATE_KEY,
    TOKEN_COOKIE,
    authorize_url,
    exchange_code,
    new_state,
    validate_state,
)
from contextgate.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


def _copy_cookies(source: Response, target: Response) -> Response:
    """Carry Set-Cookie headers from `source` over to `target`."""
    target.raw_headers.extend(
        (name, value) for name, value in source.raw_headers if name == b"set-cookie"
    )
    return target


@router.get("/authorization")
async def begin_login(
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
) -> RedirectResponse:
    state = new_state()
    response = RedirectResponse(authorize_url(settings, state), status_code=302)
    await store.set(response, STATE_KEY, state, settings.state_ttl_seconds)
    logger.info("Login started (session backend: %s)", store.backend)
    return response


@router.get("/callback", response_model=None)
async def complete_login(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
    store: SessionStore = Depends(get_session_store),
    token_store: SessionStore = Depends(get_token_store),
) -> Response:
    response = RedirectResponse("/", status_code=302)
    # Consumed up front: a state value is good for one callback, pass or fail.
    saved_state = await store.pop(request, response, STATE_KEY)

    try:
        valid_code = validate_state(code, state, saved_state)
        token = await exchange_code(client, settings, valid_code)
    except GatewayError as e:
        logger.warning("Login failed: %s", e.message)
        failure = PlainTextResponse(e.message, status_code=e.status_code)
        return _copy_cookies(response, failure)

    await token_store.set(response, TOKEN_COOKIE, token, settings.token_cookie_max_age)
    logger.info("Login completed")
    return response


@router.get("/logout")
async def logout(
    request: Request,
    token_store: SessionStore = Depends(get_token_store),
) -> RedirectResponse:
    response = RedirectResponse("/", status_code=302)
    await token_store.pop(request, response, TOKEN_COOKIE)
    return response
