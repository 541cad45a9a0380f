"""Tool protocol endpoint — POST /query."""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from contextgate.deps import get_tool_handler
from contextgate.tool_protocol import ToolProtocolHandler

router = APIRouter()


@router.post("/query", response_model=None)
async def query(
    request: Request,
    handler: ToolProtocolHandler = Depends(get_tool_handler),
) -> Response:
    reply = await handler.handle(await request.body())
    if reply is None:
        return Response(status_code=204)
    return JSONResponse(reply)
