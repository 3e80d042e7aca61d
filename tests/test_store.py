"""Tests for the in-memory and JSON-file stores."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from qatrack.contracts import JobGateway, TriggerStore
from qatrack.kernel.execution import ExecutionRecord, ExecutionSource, ExecutionStatus
from qatrack.kernel.trigger import Trigger
from qatrack._internal.io.store import InMemoryStore, JsonFileStore


def _trigger(trigger_id, next_at=None, **overrides):
    data = {
        "id": trigger_id,
        "recurrence_kind": "daily",
        "target_id": "test-login",
        "next_scheduled_at": next_at,
    }
    data.update(overrides)
    return Trigger(**data)


def test_store_satisfies_ports(store):
    assert isinstance(store, TriggerStore)
    assert isinstance(store, JobGateway)


def test_due_triggers(store, now):
    store.save_trigger(_trigger("past", now - timedelta(minutes=1)))
    store.save_trigger(_trigger("exact", now))
    store.save_trigger(_trigger("future", now + timedelta(minutes=1)))
    store.save_trigger(_trigger("unscheduled"))
    store.save_trigger(_trigger("paused", now - timedelta(hours=1), is_active=False))
    store.save_trigger(_trigger("deploy", now - timedelta(hours=1), trigger_type="deployment"))
    due = {t.id for t in store.list_due_triggers(now)}
    assert due == {"past", "exact"}


def test_due_triggers_compare_across_offsets(store, now):
    # 13:30 in Paris is 12:30 UTC, after the noon `now`
    paris = timezone(timedelta(hours=1))
    store.save_trigger(_trigger("later", datetime(2024, 1, 3, 13, 30, tzinfo=paris)))
    assert store.list_due_triggers(now) == []


def test_executions_round_trip(store, now):
    record = ExecutionRecord(id="e1", trigger_id="t1", fired_at=now, source=ExecutionSource.MANUAL)
    store.add_execution(record)
    with pytest.raises(ValueError):
        store.add_execution(record)
    store.update_execution(record.model_copy(update={"status": ExecutionStatus.QUEUED}))
    (stored,) = store.list_executions("t1")
    assert stored.status is ExecutionStatus.QUEUED
    assert store.list_executions("other") == []


def test_update_unknown_execution_raises(store, now):
    record = ExecutionRecord(id="nope", trigger_id="t1", fired_at=now, source=ExecutionSource.MANUAL)
    with pytest.raises(KeyError):
        store.update_execution(record)


def test_targets(store):
    assert store.get_test("test-login")["id"] == "test-login"
    assert store.get_test("missing") is None
    members = store.list_suite_tests("suite-smoke")
    assert [m["execution_order"] for m in members] == [0, 1, 2]
    assert [m["test"]["id"] for m in members] == ["test-login", "test-cart", "test-checkout"]
    assert store.list_suite_tests("missing") == []


def test_enqueue_job(store):
    trigger = _trigger("t1", project_id="p1", agent_id="agent-7")
    job_id = store.enqueue_job(trigger, store.get_test("test-login"), "TRIG-ABC")
    (job,) = store.jobs
    assert job["id"] == job_id
    assert job["run_id"] == "TRIG-ABC"
    assert job["agent_id"] == "agent-7"
    assert job["project_id"] == "p1"
    assert job["base_url"] == "https://app.example.com"
    assert job["status"] == "pending"


def test_id_factory_default_is_uuid():
    first, second = InMemoryStore().new_id(), InMemoryStore().new_id()
    assert first != second
    assert len(first) == 36


def test_json_file_store_persists(tmp_path, now):
    path = tmp_path / "state" / "store.json"
    store = JsonFileStore(path)
    assert store.list_triggers() == []
    store.save_trigger(_trigger("t1", now))
    assert path.exists()

    reloaded = JsonFileStore(path)
    assert reloaded.get_trigger("t1").next_scheduled_at == now
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["triggers"][0]["id"] == "t1"


def test_json_file_store_rejects_non_object(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        JsonFileStore(path)


def test_document_is_sorted_and_stable(tmp_path, now):
    store = InMemoryStore()
    store.save_trigger(_trigger("b"))
    store.save_trigger(_trigger("a"))
    assert [t["id"] for t in store.to_document()["triggers"]] == ["a", "b"]
