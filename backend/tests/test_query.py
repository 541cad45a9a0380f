"""Tests for the tool protocol — POST /query and the dispatcher."""

from __future__ import annotations

import json

import pytest

from contextgate.errors import RetrievalError
from contextgate.tool_protocol import PROTOCOL_VERSION, ToolProtocolHandler


class StubRetriever:
    name = "stub"

    def __init__(self, items=None, error: Exception | None = None) -> None:
        self.items = items or []
        self.error = error
        self.queries: list[str] = []

    async def retrieve(self, query: str):
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.items


def rpc(method: str, params=None, request_id=1) -> dict:
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


class TestInitialize:
    async def test_returns_fixed_handshake(self, client):
        resp = await client.post("/query", json=rpc("initialize", {"protocolVersion": "1999-01-01"}))

        assert resp.status_code == 200
        data = resp.json()
        assert data["jsonrpc"] == "2.0"
        assert data["id"] == 1
        result = data["result"]
        assert result["protocolVersion"] == PROTOCOL_VERSION
        assert result["serverInfo"]["name"] == "contextgate"
        for flags in result["capabilities"].values():
            assert all(value is False for value in flags.values())

    async def test_same_result_regardless_of_params(self, client):
        a = await client.post("/query", json=rpc("initialize"))
        b = await client.post("/query", json=rpc("initialize", {"capabilities": {"x": 1}}))

        assert a.json()["result"] == b.json()["result"]

    @pytest.mark.parametrize("params", [[], "x", 5])
    async def test_non_object_params_are_ignored(self, client, params):
        plain = await client.post("/query", json=rpc("initialize"))
        resp = await client.post("/query", json=rpc("initialize", params))

        assert resp.json()["result"] == plain.json()["result"]


class TestNotifications:
    async def test_initialized_returns_204_without_body(self, client):
        resp = await client.post(
            "/query", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
        )

        assert resp.status_code == 204
        assert resp.content == b""


class TestToolsList:
    async def test_lists_single_retrieve_tool(self, client):
        resp = await client.post("/query", json=rpc("tools/list", request_id="list-1"))

        data = resp.json()
        assert data["id"] == "list-1"
        tools = data["result"]["tools"]
        assert len(tools) == 1
        tool = tools[0]
        assert tool["name"] == "retrieve"
        assert tool["title"]
        assert tool["description"]
        schema = tool["inputSchema"]
        assert schema["required"] == ["query"]
        assert schema["properties"]["query"]["type"] == "string"

    @pytest.mark.parametrize("params", [[], "x"])
    async def test_non_object_params_are_ignored(self, client, params):
        resp = await client.post("/query", json=rpc("tools/list", params))

        tools = resp.json()["result"]["tools"]
        assert [t["name"] for t in tools] == ["retrieve"]


class TestRetrieve:
    async def test_maps_backend_items_to_documents(self):
        retriever = StubRetriever(items=[
            {"id": "a", "cursor": "c-a", "text": "first", "metadata": {"source": "docs"}},
            {"text": "second"},
            {"text": "third"},
        ])
        handler = ToolProtocolHandler(retriever)

        reply = await handler.handle(json.dumps(rpc("retrieve", {"query": "ledger"}, 7)).encode())

        assert retriever.queries == ["ledger"]
        assert reply["id"] == 7
        docs = reply["result"]["documents"]
        assert [d["text"] for d in docs] == ["first", "second", "third"]
        assert docs[0] == {"id": "a", "cursor": "c-a", "text": "first", "metadata": {"source": "docs"}}
        assert docs[2] == {"id": "2", "cursor": "2", "text": "third", "metadata": {}}

    async def test_uses_context_retriever_by_default(self, client):
        resp = await client.post("/query", json=rpc("retrieve", {"query": "Kafka"}))

        docs = resp.json()["result"]["documents"]
        assert len(docs) == 1
        assert "Kafka" in docs[0]["text"]
        assert docs[0]["id"] == "0"

    @pytest.mark.parametrize("params", [None, {}, {"query": ""}, {"query": 5}, [], "payments", ["payments"]])
    async def test_invalid_params(self, params):
        retriever = StubRetriever()
        handler = ToolProtocolHandler(retriever)

        reply = await handler.handle(json.dumps(rpc("retrieve", params, 3)).encode())

        assert reply["error"]["code"] == -32602
        assert reply["id"] == 3
        assert retriever.queries == []

    async def test_loose_backend_items_are_coerced(self):
        handler = ToolProtocolHandler(
            StubRetriever(items=[{"text": None}, {"text": 42, "metadata": "x"}, {}])
        )

        reply = await handler.handle(json.dumps(rpc("retrieve", {"query": "x"}, 5)).encode())

        docs = reply["result"]["documents"]
        assert [d["text"] for d in docs] == ["", "42", ""]
        assert docs[1]["metadata"] == {}
        assert [d["id"] for d in docs] == ["0", "1", "2"]

    async def test_backend_failure_is_internal_error(self):
        handler = ToolProtocolHandler(StubRetriever(error=RetrievalError("boom")))

        reply = await handler.handle(json.dumps(rpc("retrieve", {"query": "x"}, 4)).encode())

        assert reply["error"]["code"] == -32603
        assert reply["id"] == 4
        assert "result" not in reply


class TestErrors:
    async def test_unknown_method(self, client):
        resp = await client.post("/query", json=rpc("foo", request_id="abc"))

        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == "abc"
        assert data["error"]["code"] == -32601
        assert "foo" in data["error"]["message"]
        assert "result" not in data

    async def test_parse_error(self, client):
        resp = await client.post(
            "/query", content=b"{not json", headers={"content-type": "application/json"}
        )

        data = resp.json()
        assert data["error"]["code"] == -32700
        assert data["id"] is None

    @pytest.mark.parametrize(
        "body",
        [
            [1, 2],
            {"jsonrpc": "1.0", "id": 9, "method": "initialize"},
            {"jsonrpc": "2.0", "id": 9},
            {"jsonrpc": "2.0", "id": 9, "method": 42},
        ],
    )
    async def test_invalid_request(self, client, body):
        resp = await client.post("/query", json=body)

        data = resp.json()
        assert data["error"]["code"] == -32600
        if isinstance(body, dict):
            assert data["id"] == 9
