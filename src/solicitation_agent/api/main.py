"""FastAPI entrypoint for the orchestration and catalog sync endpoints."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from solicitation_agent.agent.orchestrator import Orchestrator
from solicitation_agent.agent.registry import ToolRegistry
from solicitation_agent.agent.tools import register_builtin_tools
from solicitation_agent.catalog.sync import CatalogError, CatalogSync, CatalogSyncRequest
from solicitation_agent.config import Settings
from solicitation_agent.documents.fetcher import DocumentFetcher
from solicitation_agent.errors import PersistenceError
from solicitation_agent.llm.gateway import LangChainGateway, ModelGateway, create_chat_model
from solicitation_agent.obs.logging import configure_logging, get_logger
from solicitation_agent.obs.tracing import AuditLog
from solicitation_agent.storage.blobs import DocumentStore, create_document_store
from solicitation_agent.storage.records import RecordStore
from solicitation_agent.storage.sql import SqlRecordStore

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": (
        "authorization, apikey, x-client-request-id, content-type, x-idempotency-key"
    ),
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


@dataclass(slots=True)
class Services:
    """Process-wide collaborators shared by every request."""

    settings: Settings
    store: RecordStore
    documents: DocumentStore
    registry: ToolRegistry
    audit_log: AuditLog
    catalog: CatalogSync
    gateway: ModelGateway | None = None
    fetcher: DocumentFetcher | None = None

    def orchestrator(self) -> Orchestrator | None:
        if self.gateway is None:
            return None
        return Orchestrator(
            gateway=self.gateway,
            registry=self.registry,
            audit_log=self.audit_log,
            config=self.settings.agent,
        )


def build_services(
    settings: Settings,
    *,
    store: RecordStore | None = None,
    documents: DocumentStore | None = None,
    gateway: ModelGateway | None = None,
    fetcher: DocumentFetcher | None = None,
    catalog: CatalogSync | None = None,
) -> Services:
    store = store or SqlRecordStore.from_url(settings.storage.database_url)
    documents = documents or create_document_store(settings.storage)
    if gateway is None:
        llm = create_chat_model(settings.model)
        gateway = LangChainGateway(llm) if llm is not None else None
    fetcher = fetcher or DocumentFetcher(
        documents,
        private_store=settings.storage.private_bucket,
        signed_url_ttl_seconds=settings.agent.signed_url_ttl_seconds,
        timeout_seconds=settings.agent.fetch_timeout_seconds,
    )

    registry = ToolRegistry()
    register_builtin_tools(
        registry,
        store=store,
        documents=documents,
        fetcher=fetcher,
        config=settings.agent,
    )
    return Services(
        settings=settings,
        store=store,
        documents=documents,
        registry=registry,
        audit_log=AuditLog(store),
        catalog=catalog or CatalogSync(store, settings.catalog),
        gateway=gateway,
        fetcher=fetcher,
    )


def create_app(services: Services) -> FastAPI:
    settings = services.settings
    version = settings.agent.version

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        configure_logging("solicitation-agent", settings.log_level)
        yield
        await services.audit_log.drain()

    app = FastAPI(title="Solicitation Agent", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "version": version,
            "llm_configured": services.gateway is not None,
        }

    @app.options("/orchestrate")
    @app.options("/catalog/sync")
    def preflight() -> Response:
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.post("/orchestrate")
    async def orchestrate(request: Request) -> JSONResponse:
        orchestrator = services.orchestrator()
        if orchestrator is None:
            return _json({"version": version, "error": "Missing OPENAI_API_KEY"}, 500)

        body = await _read_body(request)
        message = body.get("message") if isinstance(body, dict) else None
        if not isinstance(message, str) or not message:
            return _json(
                {"version": version, "error": "Body must be { message: string }", "received": body},
                400,
            )

        idempotency_key = body.get("idempotencyKey")
        if not isinstance(idempotency_key, str) or not idempotency_key:
            idempotency_key = request.headers.get("x-idempotency-key") or None

        outcome = await orchestrator.handle(message, idempotency_key=idempotency_key)
        return _json(outcome.body, outcome.status_code)

    @app.post("/catalog/sync")
    async def catalog_sync(request: Request) -> JSONResponse:
        if not settings.catalog.api_key:
            return _json({"error": "Missing SAM_API_KEY."}, 500)

        body = await _read_body(request)
        try:
            sync_request = CatalogSyncRequest.model_validate(body if isinstance(body, dict) else {})
        except ValidationError as exc:
            detail = json.loads(exc.json(include_url=False))
            return _json({"error": "Invalid sync request", "detail": detail}, 400)

        try:
            result = await services.catalog.run(sync_request)
        except CatalogError as exc:
            return _json({"error": str(exc), "detail": exc.detail}, exc.status)
        except PersistenceError as exc:
            logger.error("catalog_upsert_failed", error=str(exc))
            return _json({"error": "DB upsert failed", "detail": str(exc)}, 500)
        except Exception as exc:  # noqa: BLE001
            logger.exception("catalog_sync_failed")
            return _json({"error": "Unhandled error", "detail": str(exc)}, 500)
        return _json(result, 200)

    return app


async def _read_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return {}


def _json(body: Any, status: int) -> JSONResponse:
    return JSONResponse(body, status_code=status, headers=CORS_HEADERS)


app = create_app(build_services(Settings.from_env()))
