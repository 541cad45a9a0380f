"""Tool protocol handler — JSON-RPC dispatch for the orchestrator.

Each POST /query message is routed independently by its `method`; nothing is
kept between calls. Supported methods:

    initialize                 capability handshake
    notifications/initialized  one-way ack, no response body
    tools/list                 the single `retrieve` tool descriptor
    retrieve                   run a query against the retrieval backend

Anything else gets a -32601 error. Errors are JSON-RPC error objects, never
HTTP errors.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from contextgate.errors import JsonRpcError, RetrievalError
from contextgate.models import JSONRPC_VERSION, Document, ProtocolMessage, ToolDescriptor
from contextgate.retrieval import Retriever

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

SERVER_INFO = {"name": "contextgate", "version": "0.1.0"}

CAPABILITIES = {
    "tools": {"listChanged": False},
    "resources": {"subscribe": False, "listChanged": False},
    "prompts": {"listChanged": False},
}

NOTIFICATION_INITIALIZED = "notifications/initialized"

RETRIEVE_TOOL = ToolDescriptor(
    name="retrieve",
    title="Retrieve project documents",
    description=(
        "Search the project knowledge base and return the documents most "
        "relevant to the query."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Free-text search query",
            },
        },
        "required": ["query"],
    },
)


def result_response(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, error: JsonRpcError) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error.to_dict()}


class ToolProtocolHandler:
    """Routes protocol messages to method handlers."""

    def __init__(self, retriever: Retriever) -> None:
        self._retriever = retriever
        self._methods: dict[str, Callable[[Any], Awaitable[dict[str, Any]]]] = {
            "initialize": self.initialize,
            "tools/list": self.list_tools,
            "retrieve": self.retrieve,
        }

    async def handle(self, raw: bytes) -> dict[str, Any] | None:
        """Answer one raw message. Returns None for notifications."""
        try:
            data = json.loads(raw)
        except ValueError:
            return error_response(None, JsonRpcError(JsonRpcError.PARSE_ERROR, "Parse error"))

        request_id = data.get("id") if isinstance(data, dict) else None
        try:
            message = ProtocolMessage.model_validate(data)
        except ValidationError:
            return error_response(
                request_id, JsonRpcError(JsonRpcError.INVALID_REQUEST, "Invalid Request")
            )

        return await self.dispatch(message)

    async def dispatch(self, message: ProtocolMessage) -> dict[str, Any] | None:
        if message.method == NOTIFICATION_INITIALIZED:
            return None

        handler = self._methods.get(message.method)
        if handler is None:
            logger.warning("Unknown protocol method: %s", message.method)
            return error_response(
                message.id,
                JsonRpcError(JsonRpcError.METHOD_NOT_FOUND, f"Method not found: {message.method}"),
            )

        try:
            result = await handler(message.params)
        except JsonRpcError as e:
            return error_response(message.id, e)
        return result_response(message.id, result)

    async def initialize(self, params: Any) -> dict[str, Any]:
        # Client-offered versions and capabilities are not negotiated.
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": CAPABILITIES,
            "serverInfo": SERVER_INFO,
        }

    async def list_tools(self, params: Any) -> dict[str, Any]:
        return {"tools": [RETRIEVE_TOOL.model_dump(by_alias=True)]}

    async def retrieve(self, params: Any) -> dict[str, Any]:
        query = params.get("query") if isinstance(params, dict) else None
        if not isinstance(query, str) or not query.strip():
            raise JsonRpcError(JsonRpcError.INVALID_PARAMS, "Invalid params: 'query' must be a non-empty string")

        try:
            items = await self._retriever.retrieve(query)
        except RetrievalError as e:
            logger.error("Retrieval failed for %s backend: %s", self._retriever.name, e)
            raise JsonRpcError(JsonRpcError.INTERNAL_ERROR, "Retrieval backend failed") from e

        documents = [Document.from_item(item, position) for position, item in enumerate(items)]
        return {"documents": [doc.model_dump() for doc in documents]}
