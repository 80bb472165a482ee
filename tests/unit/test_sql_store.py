import pytest

from solicitation_agent.errors import PersistenceError
from solicitation_agent.storage.records import AnalysisStatus
from solicitation_agent.storage.sql import SqlRecordStore


@pytest.fixture
def sql_store() -> SqlRecordStore:
    return SqlRecordStore.from_url("sqlite://")


def _contract(title: str) -> dict[str, object]:
    return {
        "notice_id": "N1",
        "title": title,
        "sam_ui_link": "https://sam.gov/opp/N1/view",
        "attachments": [{"name": "Attachment 1", "url": "https://good.example/a.pdf"}],
        "raw": {"noticeId": "N1"},
        "ignored_column": "dropped",
    }


def test_contract_upsert_is_keyed_by_notice_id(sql_store) -> None:
    sql_store.upsert_contracts([_contract("Runway rehab")])
    sql_store.upsert_contracts([_contract("Runway rehab, amended")])

    row = sql_store.get_contract("N1")

    assert row["title"] == "Runway rehab, amended"
    assert row["attachments"] == [{"name": "Attachment 1", "url": "https://good.example/a.pdf"}]
    assert sql_store.get_contract("N2") is None


def test_analysis_lifecycle_round_trips(sql_store) -> None:
    record = sql_store.create_analysis("N1", ["https://good.example/a.pdf"], idempotency_key="idem-1")

    sql_store.complete_analysis(record.id, {"overview": "o", "scope_summary": "s"})
    sql_store.attach_judgement(record.id, {"confidence": 0.7}, 0.7)

    loaded = sql_store.get_analysis(record.id)
    assert loaded.status is AnalysisStatus.SUCCEEDED
    assert loaded.idempotency_key == "idem-1"
    assert loaded.doc_ids == ["https://good.example/a.pdf"]
    assert loaded.summary == {"overview": "o", "scope_summary": "s"}
    assert loaded.confidence == 0.7


def test_finished_analysis_cannot_transition_again(sql_store) -> None:
    record = sql_store.create_analysis("N1", ["a.pdf"])
    sql_store.fail_analysis(record.id, "fetch exploded")

    with pytest.raises(PersistenceError):
        sql_store.complete_analysis(record.id, {"overview": "o", "scope_summary": "s"})

    loaded = sql_store.get_analysis(record.id)
    assert loaded.status is AnalysisStatus.FAILED
    assert loaded.error == "fetch exploded"
    assert loaded.summary is None


def test_missing_analysis_writes_raise(sql_store) -> None:
    assert sql_store.get_analysis("nope") is None
    with pytest.raises(PersistenceError):
        sql_store.fail_analysis("nope", "x")
    with pytest.raises(PersistenceError):
        sql_store.attach_judgement("nope", {}, None)


def test_audit_rows_are_appended(sql_store) -> None:
    sql_store.insert_audit({"message": "hi", "ok": True, "tool_called": "searchContracts", "latency_ms": 4.2})
    sql_store.insert_audit({"message": "boom", "ok": False, "error_text": "quota", "details": {"stack": "..."}})

    from sqlalchemy import select

    from solicitation_agent.storage.sql import audit_table

    with sql_store.engine.connect() as conn:
        rows = conn.execute(select(audit_table).order_by(audit_table.c.id)).mappings().all()

    assert [row["ok"] for row in rows] == [True, False]
    assert rows[0]["tool_called"] == "searchContracts"
    assert rows[1]["details"] == {"stack": "..."}
    assert all(row["created_at"] for row in rows)


def test_upsert_is_a_single_conflict_aware_statement() -> None:
    from sqlalchemy.dialects import postgresql, sqlite

    from solicitation_agent.storage.sql import upsert_contract_statement

    values = {"notice_id": "N1", "title": "Runway rehab"}
    for name, dialect in (("sqlite", sqlite.dialect()), ("postgresql", postgresql.dialect())):
        sql = str(upsert_contract_statement(name, values).compile(dialect=dialect))
        assert "ON CONFLICT (notice_id) DO UPDATE" in sql

    assert upsert_contract_statement("mysql", values) is None


def test_batch_with_repeated_notice_id_keeps_last(sql_store) -> None:
    sql_store.upsert_contracts([_contract("first"), _contract("second")])

    assert sql_store.get_contract("N1")["title"] == "second"
