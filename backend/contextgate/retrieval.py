"""Retrieval backends for the `retrieve` tool.

A backend takes a query string and returns raw items — dicts that carry `text`
and optionally `id`, `cursor` and `metadata`. Mapping items to Documents is the
tool protocol's job, not the backend's.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

import httpx

from contextgate.errors import RetrievalError

logger = logging.getLogger(__name__)


class Retriever(Protocol):
    name: str

    async def retrieve(self, query: str) -> list[dict[str, Any]]: ...


class HttpRetriever:
    """Calls a remote search service: POST {"query": ...} -> list of items."""

    name = "http"

    def __init__(self, client: httpx.AsyncClient, url: str, timeout: float = 15.0) -> None:
        self._client = client
        self._url = url
        self._timeout = timeout

    async def retrieve(self, query: str) -> list[dict[str, Any]]:
        try:
            response = await self._client.post(
                self._url,
                json={"query": query},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.exception("Retrieval backend request failed")
            raise RetrievalError(f"Retrieval backend error: {type(e).__name__}") from e
        except ValueError as e:
            raise RetrievalError("Retrieval backend returned invalid JSON") from e

        if isinstance(data, dict):
            data = data.get("documents", [])
        if not isinstance(data, list):
            raise RetrievalError("Retrieval backend returned an unexpected shape")
        return [item if isinstance(item, dict) else {"text": str(item)} for item in data]


class ContextRetriever:
    """Searches the project context block paragraph by paragraph.

    A paragraph matches when it shares at least one word with the query; results
    are ordered by how many query words they contain, then by position.
    """

    name = "context"

    def __init__(self, project_context: str, limit: int = 5) -> None:
        self._paragraphs = [
            p.strip() for p in re.split(r"\n\s*\n|\n(?=•)", project_context) if p.strip()
        ]
        self._limit = limit

    @staticmethod
    def _terms(text: str) -> set[str]:
        return {t for t in re.findall(r"\w+", text.lower()) if len(t) > 1}

    async def retrieve(self, query: str) -> list[dict[str, Any]]:
        wanted = self._terms(query)
        scored = []
        for position, paragraph in enumerate(self._paragraphs):
            hits = len(wanted & self._terms(paragraph))
            if hits:
                scored.append((-hits, position, paragraph))
        scored.sort()
        return [
            {"text": paragraph, "metadata": {"paragraph": position}}
            for _, position, paragraph in scored[: self._limit]
        ]
