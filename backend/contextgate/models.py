"""Pydantic models — the shared contract for the HTTP and tool-protocol surfaces.

Chat payloads are deliberately loose: unknown fields are kept and forwarded
upstream verbatim, so these models only describe the keys the gateway reads.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"


# ---------------------------------------------------------------------------
# Chat proxy
# ---------------------------------------------------------------------------

class ChatConfig(BaseModel):
    """Optional nested `config` object of a chat request."""
    model_config = ConfigDict(extra="allow")

    model: str | None = None


class ChatRequest(BaseModel):
    """POST /agent request body."""
    model_config = ConfigDict(extra="allow")

    messages: list[Any] = Field(min_length=1)
    model: str | None = None
    config: ChatConfig | None = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    """GET /health response."""
    status: Literal["ok", "degraded"]
    version: str = "0.1.0"
    oauth_configured: bool
    retrieval_backend: Literal["http", "context"]


# ---------------------------------------------------------------------------
# Tool protocol
# ---------------------------------------------------------------------------

class ProtocolMessage(BaseModel):
    """An inbound JSON-RPC message on POST /query."""
    jsonrpc: Literal["2.0"]
    id: Any = None
    method: str
    params: Any = None


class Document(BaseModel):
    """One item of a `retrieve` result."""
    id: str
    cursor: str
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_item(cls, item: dict[str, Any], position: int) -> Document:
        """Map a raw backend item, defaulting id/cursor to its ordinal position."""
        ordinal = str(position)
        item_id = item.get("id")
        cursor = item.get("cursor")
        metadata = item.get("metadata")
        text = item.get("text")
        return cls(
            id=ordinal if item_id is None else str(item_id),
            cursor=ordinal if cursor is None else str(cursor),
            text="" if text is None else str(text),
            metadata=metadata if isinstance(metadata, dict) else {},
        )


class ToolDescriptor(BaseModel):
    """An entry of the `tools/list` result."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    title: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")
