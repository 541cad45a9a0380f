"""Chat endpoint — POST /agent → Copilot SSE stream, relayed verbatim."""

import httpx
from fastapi import APIRouter, Depends, Request

from contextgate.config import Settings, get_settings
from contextgate.deps import get_http_client, get_project_context
from contextgate.oauth import TOKEN_COOKIE
from contextgate.proxy import TOKEN_HEADER, UpstreamRelayResponse, handle_chat_request

router = APIRouter()


@router.post("/agent")
async def agent(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
    project_context: str = Depends(get_project_context),
) -> UpstreamRelayResponse:
    """Forward a chat request upstream and stream the reply back.

    Status and headers are Copilot's own; errors before the upstream call
    are plain-text 400/401/500 responses.
    """
    return await handle_chat_request(
        client,
        settings,
        project_context,
        header_token=request.headers.get(TOKEN_HEADER),
        cookie_token=request.cookies.get(TOKEN_COOKIE),
        body=await request.body(),
    )
