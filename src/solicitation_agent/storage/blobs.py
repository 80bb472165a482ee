"""Document store for user uploads, namespaced by notice id."""

from __future__ import annotations

import hashlib
import time
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from solicitation_agent.config import StorageConfig
from solicitation_agent.errors import PersistenceError

UPLOAD_NAMESPACE = "contract_docs"


def upload_prefix(notice_id: str) -> str:
    return f"{UPLOAD_NAMESPACE}/{notice_id}/"


class DocumentStore(ABC):
    """Object storage interface consumed by the document tools."""

    @abstractmethod
    def list(self, prefix: str, *, limit: int = 100) -> list[str]:
        """Return object names (relative to ``prefix``) directly under ``prefix``."""

    @abstractmethod
    def public_url(self, path: str) -> str | None:
        """Return an unauthenticated URL for ``path``."""

    @abstractmethod
    def signed_url(self, path: str, *, expires_in: int) -> str | None:
        """Return a time-limited URL for ``path``."""


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store; URLs point at ``base_url`` for a test server."""

    def __init__(self, base_url: str = "https://storage.local", secret: str = "local") -> None:
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.objects: dict[str, bytes] = {}

    def put(self, path: str, data: bytes) -> None:
        self.objects[path] = data

    def list(self, prefix: str, *, limit: int = 100) -> list[str]:
        names = []
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            name = key[len(prefix):]
            if name and "/" not in name:
                names.append(name)
        return names[:limit]

    def public_url(self, path: str) -> str | None:
        if path not in self.objects:
            return None
        return f"{self.base_url}/{quote(path)}"

    def signed_url(self, path: str, *, expires_in: int) -> str | None:
        if path not in self.objects:
            return None
        expires = int(time.time()) + expires_in
        token = hashlib.sha256(f"{self.secret}:{path}:{expires}".encode("utf-8")).hexdigest()[:32]
        return f"{self.base_url}/{quote(path)}?expires={expires}&token={token}"


class S3DocumentStore(DocumentStore):
    """S3-compatible object storage (AWS S3, MinIO) through boto3."""

    def __init__(self, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_config(cls, config: StorageConfig) -> "S3DocumentStore":
        import boto3

        kwargs: dict[str, Any] = {}
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url
        if config.region:
            kwargs["region_name"] = config.region
        return cls(str(config.bucket), boto3.client("s3", **kwargs))

    def list(self, prefix: str, *, limit: int = 100) -> list[str]:
        try:
            response = self.client.list_objects_v2(
                Bucket=self.bucket,
                Prefix=prefix,
                Delimiter="/",
                MaxKeys=limit,
            )
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(str(exc)) from exc
        names = []
        for item in response.get("Contents", []):
            name = str(item.get("Key", ""))[len(prefix):]
            if name:
                names.append(name)
        return names

    def public_url(self, path: str) -> str | None:
        endpoint = str(self.client.meta.endpoint_url).rstrip("/")
        return f"{endpoint}/{self.bucket}/{quote(path)}"

    def signed_url(self, path: str, *, expires_in: int) -> str | None:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(str(exc)) from exc


def create_document_store(config: StorageConfig) -> DocumentStore:
    if config.bucket:
        return S3DocumentStore.from_config(config)
    return InMemoryDocumentStore()
