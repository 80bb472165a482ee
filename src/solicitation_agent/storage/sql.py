"""SQLAlchemy 2.x implementation of the record store."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Engine,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from solicitation_agent.errors import PersistenceError
from solicitation_agent.storage.records import (
    AnalysisRecord,
    AnalysisStatus,
    RecordStore,
    utc_now,
)

metadata = MetaData()

contracts_table = Table(
    "samgov_contracts",
    metadata,
    Column("notice_id", String(128), primary_key=True),
    Column("title", Text),
    Column("agency", Text),
    Column("naics", String(32)),
    Column("set_aside", Text),
    Column("notice_type", String(64)),
    Column("solicitation_number", String(128)),
    Column("place_city", Text),
    Column("place_state", String(32)),
    Column("place_country", String(32)),
    Column("posted_at", String(40)),
    Column("response_due_at", String(40)),
    Column("sam_ui_link", Text),
    Column("attachments", JSON, nullable=False, default=list),
    Column("raw", JSON),
    Column("updated_at", String(40)),
)

analyses_table = Table(
    "analyses",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("contract_notice_id", String(128), nullable=False, index=True),
    Column("doc_ids", JSON, nullable=False),
    Column("idempotency_key", String(255)),
    Column("status", String(16), nullable=False),
    Column("summary", JSON),
    Column("judge", JSON),
    Column("confidence", Float),
    Column("error", Text),
    Column("created_at", String(40), nullable=False),
)

audit_table = Table(
    "ai_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("idempotency_key", String(255), index=True),
    Column("message", Text),
    Column("tool_called", String(64)),
    Column("ok", Boolean, nullable=False),
    Column("response_text", Text),
    Column("error_text", Text),
    Column("details", JSON),
    Column("raw_tool", JSON),
    Column("raw_result", JSON),
    Column("latency_ms", Float),
    Column("created_at", String(40), nullable=False),
)

_AUDIT_COLUMNS = {column.name for column in audit_table.columns} - {"id"}


def upsert_contract_statement(dialect: str, values: dict[str, Any]) -> Any:
    """Single-statement upsert keyed by ``notice_id`` where the dialect has one."""

    if dialect == "postgresql":
        statement = postgresql.insert(contracts_table).values(**values)
    elif dialect == "sqlite":
        statement = sqlite.insert(contracts_table).values(**values)
    else:
        return None
    updates = {key: statement.excluded[key] for key in values if key != "notice_id"}
    if not updates:
        return statement.on_conflict_do_nothing(index_elements=["notice_id"])
    return statement.on_conflict_do_update(index_elements=["notice_id"], set_=updates)


class SqlRecordStore(RecordStore):
    """Record store over any SQLAlchemy engine (Postgres in production, SQLite locally)."""

    def __init__(self, engine: Engine, *, create_tables: bool = True) -> None:
        self.engine = engine
        if create_tables:
            metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str) -> "SqlRecordStore":
        kwargs: dict[str, Any] = {"future": True}
        if url.startswith("sqlite"):
            # Store calls run on worker threads.
            kwargs["connect_args"] = {"check_same_thread": False}
            if url.endswith(":memory:") or url in {"sqlite://", "sqlite:///"}:
                kwargs["poolclass"] = StaticPool
        return cls(create_engine(url, **kwargs))

    def get_contract(self, notice_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                select(contracts_table).where(contracts_table.c.notice_id == notice_id)
            ).mappings().first()
        return dict(row) if row is not None else None

    def upsert_contracts(self, rows: list[dict[str, Any]]) -> None:
        dialect = self.engine.dialect.name
        with self._transaction() as conn:
            for row in rows:
                values = {key: value for key, value in row.items() if key in contracts_table.c}
                statement = upsert_contract_statement(dialect, values)
                if statement is not None:
                    conn.execute(statement)
                    continue
                result = conn.execute(
                    update(contracts_table)
                    .where(contracts_table.c.notice_id == values["notice_id"])
                    .values(**values)
                )
                if result.rowcount == 0:
                    conn.execute(insert(contracts_table).values(**values))

    def create_analysis(
        self,
        notice_id: str,
        doc_ids: list[str],
        *,
        idempotency_key: str | None = None,
    ) -> AnalysisRecord:
        record = AnalysisRecord(
            id=str(uuid.uuid4()),
            notice_id=notice_id,
            doc_ids=list(doc_ids),
            idempotency_key=idempotency_key,
        )
        with self._transaction() as conn:
            conn.execute(
                insert(analyses_table).values(
                    id=record.id,
                    contract_notice_id=record.notice_id,
                    doc_ids=record.doc_ids,
                    idempotency_key=record.idempotency_key,
                    status=record.status.value,
                    created_at=record.created_at,
                )
            )
        return record

    def get_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                select(analyses_table).where(analyses_table.c.id == analysis_id)
            ).mappings().first()
        if row is None:
            return None
        return AnalysisRecord(
            id=row["id"],
            notice_id=row["contract_notice_id"],
            doc_ids=list(row["doc_ids"] or []),
            status=AnalysisStatus(row["status"]),
            idempotency_key=row["idempotency_key"],
            summary=row["summary"],
            judge=row["judge"],
            confidence=row["confidence"],
            error=row["error"],
            created_at=row["created_at"],
        )

    def complete_analysis(self, analysis_id: str, summary: dict[str, Any]) -> None:
        self._transition(analysis_id, status=AnalysisStatus.SUCCEEDED.value, summary=summary)

    def fail_analysis(self, analysis_id: str, error: str) -> None:
        self._transition(analysis_id, status=AnalysisStatus.FAILED.value, error=error)

    def attach_judgement(
        self,
        analysis_id: str,
        judge: dict[str, Any],
        confidence: float | None,
    ) -> None:
        with self._transaction() as conn:
            result = conn.execute(
                update(analyses_table)
                .where(analyses_table.c.id == analysis_id)
                .values(judge=judge, confidence=confidence)
            )
        if result.rowcount == 0:
            raise PersistenceError(f"Analysis not found: {analysis_id}")

    def insert_audit(self, row: dict[str, Any]) -> None:
        values = {key: value for key, value in row.items() if key in _AUDIT_COLUMNS}
        values.setdefault("created_at", utc_now())
        with self._transaction() as conn:
            conn.execute(insert(audit_table).values(**values))

    def _transition(self, analysis_id: str, **values: Any) -> None:
        # Guarded on status so a finished record can never be rewritten.
        with self._transaction() as conn:
            result = conn.execute(
                update(analyses_table)
                .where(analyses_table.c.id == analysis_id)
                .where(analyses_table.c.status == AnalysisStatus.RUNNING.value)
                .values(**values)
            )
        if result.rowcount == 0:
            raise PersistenceError(f"Analysis {analysis_id} is missing or no longer running")

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc
