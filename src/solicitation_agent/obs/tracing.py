"""Audit logging of orchestration rounds and request timing."""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from solicitation_agent.obs.logging import get_logger
from solicitation_agent.storage.records import RecordStore, utc_now

logger = get_logger(__name__)


@dataclass(slots=True)
class AuditEntry:
    """One terminal outcome of an orchestration round."""

    message: str
    ok: bool
    idempotency_key: str | None = None
    tool_called: str | None = None
    response_text: str | None = None
    error_text: str | None = None
    details: Any = None
    raw_tool: dict[str, Any] | None = None
    raw_result: dict[str, Any] | None = None
    latency_ms: float | None = None
    created_at: str = field(default_factory=utc_now)

    def as_row(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


class AuditLog:
    """Fire-and-forget writer for audit entries.

    ``record`` schedules the store write on a background task and returns
    immediately; a failed write is logged and dropped, never raised to the
    request that produced it. ``drain`` waits for in-flight writes and is
    used on shutdown and in tests.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._pending: set[asyncio.Task[None]] = set()

    def record(self, entry: AuditEntry) -> None:
        task = asyncio.get_running_loop().create_task(self._write(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def _write(self, entry: AuditEntry) -> None:
        try:
            await asyncio.to_thread(self._store.insert_audit, entry.as_row())
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "audit_write_failed",
                idempotency_key=entry.idempotency_key,
                error=str(exc),
            )


class Timer:
    """Simple context timer used by the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
