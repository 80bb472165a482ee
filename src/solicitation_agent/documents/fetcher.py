"""Concurrent retrieval of selected solicitation documents."""

from __future__ import annotations

import asyncio
import posixpath
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

import httpx

from solicitation_agent.errors import PersistenceError
from solicitation_agent.obs.logging import get_logger
from solicitation_agent.storage.blobs import DocumentStore

logger = get_logger(__name__)


@dataclass(slots=True)
class FetchedDocument:
    ref: str
    data: bytes
    mime_type: str = "application/pdf"

    @property
    def filename(self) -> str:
        name = posixpath.basename(urlsplit(self.ref).path)
        return unquote(name) or "document.pdf"


class DocumentFetcher:
    """Resolves document references to bytes.

    A reference is either an external ``http(s)`` URL, fetched directly, or a
    path inside the document store, resolved to a signed URL when the store is
    private and to its public URL otherwise. All references of one batch are
    fetched concurrently; a reference that cannot be resolved or fetched is
    dropped and the rest of the batch continues.
    """

    def __init__(
        self,
        documents: DocumentStore,
        *,
        private_store: bool = False,
        signed_url_ttl_seconds: int = 3600,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.documents = documents
        self.private_store = private_store
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def fetch_all(self, refs: list[str]) -> list[FetchedDocument]:
        """Fetch every reference, preserving selection order among successes."""

        if self._client is not None:
            results = await asyncio.gather(*(self._fetch_one(self._client, ref) for ref in refs))
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True) as client:
                results = await asyncio.gather(*(self._fetch_one(client, ref) for ref in refs))
        return [document for document in results if document is not None]

    def resolve(self, ref: str) -> str | None:
        if ref.startswith(("http://", "https://")):
            return ref
        if self.private_store:
            return self.documents.signed_url(ref, expires_in=self.signed_url_ttl_seconds)
        return self.documents.public_url(ref)

    async def _fetch_one(self, client: httpx.AsyncClient, ref: str) -> FetchedDocument | None:
        try:
            url = self.resolve(ref)
            if not url:
                logger.warning("document_fetch_failed", ref=ref, reason="unresolved")
                return None
            response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL, PersistenceError) as exc:
            logger.warning("document_fetch_failed", ref=ref, reason=str(exc))
            return None

        if not response.is_success:
            logger.warning("document_fetch_failed", ref=ref, status=response.status_code)
            return None
        return FetchedDocument(ref=ref, data=response.content)
