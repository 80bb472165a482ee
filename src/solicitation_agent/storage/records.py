"""Row-level persistence interface for contracts, analyses and audit entries."""

from __future__ import annotations

import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from solicitation_agent.errors import PersistenceError


class AnalysisStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class AnalysisRecord:
    """One summarize -> judge run for a notice and a document selection."""

    id: str
    notice_id: str
    doc_ids: list[str]
    status: AnalysisStatus = AnalysisStatus.RUNNING
    idempotency_key: str | None = None
    summary: dict[str, Any] | None = None
    judge: dict[str, Any] | None = None
    confidence: float | None = None
    error: str | None = None
    created_at: str = field(default_factory=lambda: utc_now())


class RecordStore(ABC):
    """Narrow row-based store consumed by the tools and the audit log.

    Analysis lifecycle writes (``complete_analysis`` / ``fail_analysis``) are
    only legal from ``running``; implementations raise ``PersistenceError``
    when the record is missing or already finished.
    """

    @abstractmethod
    def get_contract(self, notice_id: str) -> dict[str, Any] | None:
        """Return the contract row for ``notice_id`` if present."""

    @abstractmethod
    def upsert_contracts(self, rows: list[dict[str, Any]]) -> None:
        """Insert or update contract rows keyed by ``notice_id``."""

    @abstractmethod
    def create_analysis(
        self,
        notice_id: str,
        doc_ids: list[str],
        *,
        idempotency_key: str | None = None,
    ) -> AnalysisRecord:
        """Create a record in ``running`` state."""

    @abstractmethod
    def get_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        """Load one analysis record."""

    @abstractmethod
    def complete_analysis(self, analysis_id: str, summary: dict[str, Any]) -> None:
        """Transition ``running -> succeeded`` attaching the summary."""

    @abstractmethod
    def fail_analysis(self, analysis_id: str, error: str) -> None:
        """Transition ``running -> failed`` attaching the error text."""

    @abstractmethod
    def attach_judgement(
        self,
        analysis_id: str,
        judge: dict[str, Any],
        confidence: float | None,
    ) -> None:
        """Attach the classification payload to an existing record."""

    @abstractmethod
    def insert_audit(self, row: dict[str, Any]) -> None:
        """Append one audit log row."""


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed store for local runs and tests."""

    def __init__(self) -> None:
        self.contracts: dict[str, dict[str, Any]] = {}
        self.analyses: dict[str, AnalysisRecord] = {}
        self.audit_rows: list[dict[str, Any]] = []

    def get_contract(self, notice_id: str) -> dict[str, Any] | None:
        row = self.contracts.get(notice_id)
        return copy.deepcopy(row) if row is not None else None

    def upsert_contracts(self, rows: list[dict[str, Any]]) -> None:
        for row in rows:
            existing = self.contracts.setdefault(row["notice_id"], {})
            existing.update(copy.deepcopy(row))

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
        self.analyses[record.id] = record
        return copy.deepcopy(record)

    def get_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        record = self.analyses.get(analysis_id)
        return copy.deepcopy(record) if record is not None else None

    def complete_analysis(self, analysis_id: str, summary: dict[str, Any]) -> None:
        record = self._running(analysis_id)
        record.summary = copy.deepcopy(summary)
        record.status = AnalysisStatus.SUCCEEDED

    def fail_analysis(self, analysis_id: str, error: str) -> None:
        record = self._running(analysis_id)
        record.error = error
        record.status = AnalysisStatus.FAILED

    def attach_judgement(
        self,
        analysis_id: str,
        judge: dict[str, Any],
        confidence: float | None,
    ) -> None:
        record = self.analyses.get(analysis_id)
        if record is None:
            raise PersistenceError(f"Analysis not found: {analysis_id}")
        record.judge = copy.deepcopy(judge)
        record.confidence = confidence

    def insert_audit(self, row: dict[str, Any]) -> None:
        self.audit_rows.append(copy.deepcopy(row))

    def _running(self, analysis_id: str) -> AnalysisRecord:
        record = self.analyses.get(analysis_id)
        if record is None:
            raise PersistenceError(f"Analysis not found: {analysis_id}")
        if record.status is not AnalysisStatus.RUNNING:
            raise PersistenceError(
                f"Analysis {analysis_id} already {record.status.value}"
            )
        return record


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
