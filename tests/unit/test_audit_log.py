import asyncio

from solicitation_agent.obs.tracing import AuditEntry, AuditLog, Timer
from solicitation_agent.storage.records import InMemoryRecordStore


class _BrokenStore(InMemoryRecordStore):
    def insert_audit(self, row):
        raise RuntimeError("ai_logs unavailable")


def test_entries_are_written_after_drain() -> None:
    store = InMemoryRecordStore()
    log = AuditLog(store)

    async def run() -> None:
        log.record(AuditEntry(message="hi", ok=True, idempotency_key="k-1", response_text="hello"))
        await log.drain()

    asyncio.run(run())

    (row,) = store.audit_rows
    assert row["message"] == "hi"
    assert row["ok"] is True
    assert row["idempotency_key"] == "k-1"
    assert "error_text" not in row


def test_failed_write_never_reaches_caller() -> None:
    log = AuditLog(_BrokenStore())

    async def run() -> str:
        log.record(AuditEntry(message="hi", ok=False, error_text="quota"))
        await log.drain()
        return "served"

    assert asyncio.run(run()) == "served"


def test_timer_measures_elapsed_ms() -> None:
    with Timer() as timer:
        sum(range(1000))

    assert timer.elapsed_ms >= 0.0
