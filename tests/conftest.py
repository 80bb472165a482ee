from __future__ import annotations

import os
from typing import Any

import httpx
import pytest

from solicitation_agent.agent.registry import ToolContext, ToolRegistry
from solicitation_agent.agent.tools import register_builtin_tools
from solicitation_agent.documents.fetcher import DocumentFetcher
from solicitation_agent.llm.gateway import ModelGateway
from solicitation_agent.storage.blobs import InMemoryDocumentStore
from solicitation_agent.storage.records import InMemoryRecordStore
from solicitation_agent.types import ModelReply, Turn

os.environ.setdefault("DATABASE_URL", "sqlite://")


class ScriptedGateway(ModelGateway):
    """Replays canned replies and records every model round."""

    def __init__(self, replies: list[ModelReply | str]) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def generate(
        self,
        conversation: list[Turn],
        *,
        tools: list[dict[str, Any]] | None = None,
        system_instruction: str | None = None,
    ) -> ModelReply:
        self.calls.append(
            {
                "conversation": conversation,
                "tools": tools,
                "system_instruction": system_instruction,
            }
        )
        if not self.replies:
            raise AssertionError("model called more times than scripted")
        reply = self.replies.pop(0)
        return reply if isinstance(reply, ModelReply) else ModelReply(text=reply)


PDF_ROUTES = {
    "https://good.example/a.pdf": (200, b"%PDF-1.7 good"),
    "https://bad.example/b.pdf": (500, b"server error"),
    "https://storage.local/contract_docs/N1/upload.pdf": (200, b"%PDF-1.7 upload"),
}


def _pdf_handler(request: httpx.Request) -> httpx.Response:
    url = str(request.url).split("?", 1)[0]
    status, content = PDF_ROUTES.get(url, (404, b"missing"))
    return httpx.Response(status, content=content)


@pytest.fixture
def scripted_gateway():
    return ScriptedGateway


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(base_url="https://storage.local")


@pytest.fixture
def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(_pdf_handler))


@pytest.fixture
def fetcher(document_store, http_client) -> DocumentFetcher:
    return DocumentFetcher(document_store, client=http_client)


@pytest.fixture
def registry(record_store, document_store, fetcher) -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(
        registry,
        store=record_store,
        documents=document_store,
        fetcher=fetcher,
    )
    return registry


@pytest.fixture
def make_context():
    def _make(gateway: ModelGateway, idempotency_key: str | None = None) -> ToolContext:
        return ToolContext(gateway=gateway, idempotency_key=idempotency_key)

    return _make
