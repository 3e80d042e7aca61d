"""Contract tests for qatrack.api."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from qatrack.api import (
    ComparisonResult,
    ValidationResult,
    compare,
    execution_history,
    execution_summary,
    load_trigger,
    next_occurrence,
    next_occurrence_from_rule,
    validate_trigger,
)
from qatrack.codes import ErrorCode
from qatrack.dispatch import fire_manual
from qatrack.kernel.compare import InvalidArgumentError
from qatrack.kernel.trigger import Trigger


def _trigger_data(**overrides):
    data = {"id": "t1", "name": "Nightly", "recurrence_kind": "daily", "time_of_day": "09:00", "target_id": "test-login"}
    data.update(overrides)
    return data


def _codes(issues):
    return [i.code for i in issues]


def test_compare_returns_stable_models():
    result = compare({"A": "failed", "B": "passed"}, {"A": "passed", "B": "failed", "C": "passed"})
    assert isinstance(result, ComparisonResult)
    assert [e.classification for e in result.entries] == ["regressed", "improved", "new"]
    assert result.summary.total == 3
    assert result.has_regressions


def test_compare_from_files(tmp_path):
    baseline = tmp_path / "baseline.json"
    later = tmp_path / "later.json"
    baseline.write_text(json.dumps({"A": "failed"}), encoding="utf-8")
    later.write_text(json.dumps({"A": "passed"}), encoding="utf-8")
    result = compare(baseline, str(later))
    assert result.summary.improved == 1
    assert not result.has_regressions


def test_compare_rejects_none():
    with pytest.raises(InvalidArgumentError):
        compare(None, {})


def test_load_trigger_from_path(tmp_path):
    path = tmp_path / "trigger.json"
    path.write_text(json.dumps(_trigger_data()), encoding="utf-8")
    trigger = load_trigger(path)
    assert isinstance(trigger, Trigger)
    assert load_trigger(trigger) is trigger


def test_next_occurrence_with_now_and_clock():
    now = datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc)
    expected = datetime(2024, 1, 4, 9, 0, tzinfo=timezone.utc)
    assert next_occurrence(_trigger_data(), now=now) == expected
    assert next_occurrence(_trigger_data(), clock=lambda: now) == expected


def test_next_occurrence_system_clock():
    before = datetime.now(timezone.utc)
    result = next_occurrence(_trigger_data(recurrence_kind="hourly"))
    assert before < result <= before + timedelta(hours=1, minutes=1)


def test_next_occurrence_from_rule():
    assert next_occurrence_from_rule("weekly", "09:00", 1, datetime(2024, 1, 3, 12)) == datetime(2024, 1, 8, 9)


def test_validate_ok():
    result = validate_trigger(_trigger_data())
    assert isinstance(result, ValidationResult)
    assert result.ok
    assert result.errors == []
    assert result.warnings == []
    assert result.description == "Daily at 09:00 UTC"


def test_validate_weekly_missing_day():
    result = validate_trigger(_trigger_data(recurrence_kind="weekly"))
    assert not result.ok
    assert _codes(result.errors) == [ErrorCode.MISSING_DAY_OF_WEEK.value]
    assert result.errors[0].field == "day_of_week"


def test_validate_weekly_out_of_range_day():
    result = validate_trigger(_trigger_data(recurrence_kind="weekly", day_of_week=9))
    assert _codes(result.errors) == [ErrorCode.INVALID_RECURRENCE.value]


def test_validate_bad_timezone():
    result = validate_trigger(_trigger_data(timezone="Nowhere/Special"))
    assert not result.ok
    assert _codes(result.errors) == [ErrorCode.INVALID_TIMEZONE.value]
    assert result.errors[0].field == "timezone"


def test_validate_unknown_kind():
    result = validate_trigger(_trigger_data(recurrence_kind="monthly"))
    assert _codes(result.errors) == [ErrorCode.INVALID_RECURRENCE.value]


def test_validate_unknown_field():
    result = validate_trigger(_trigger_data(cron="0 9 * * *"))
    assert _codes(result.errors) == [ErrorCode.INVALID_STRUCTURE.value]


def test_validate_schedule_without_kind():
    result = validate_trigger(_trigger_data(recurrence_kind=None))
    assert _codes(result.errors) == [ErrorCode.INVALID_RECURRENCE.value]
    assert result.errors[0].field == "recurrence_kind"


def test_validate_reports_failing_rule_field():
    # model_construct skips the model validators, so the rule check sees the raw time
    fields = Trigger(**_trigger_data()).model_dump()
    fields["time_of_day"] = "25:00"
    trigger = Trigger.model_construct(**fields)
    result = validate_trigger(trigger)
    assert not result.ok
    assert _codes(result.errors) == [ErrorCode.INVALID_RECURRENCE.value]
    assert result.errors[0].field == "time_of_day"


def test_validate_unreadable_file(tmp_path):
    result = validate_trigger(tmp_path / "missing.json")
    assert not result.ok
    assert _codes(result.errors) == [ErrorCode.INVALID_STRUCTURE.value]


def test_validate_warnings_do_not_block():
    result = validate_trigger(_trigger_data(day_of_week=3, is_active=False))
    assert result.ok
    assert _codes(result.warnings) == [ErrorCode.DAY_OF_WEEK_IGNORED.value, ErrorCode.TRIGGER_INACTIVE.value]


def test_validate_deployment_with_rule_warns():
    result = validate_trigger(_trigger_data(trigger_type="deployment", deployment_environment="staging"))
    assert result.ok
    assert _codes(result.warnings) == [ErrorCode.NO_SCHEDULE.value]
    assert result.description == "On staging deployment"


def test_execution_history_and_summary(store):
    store.save_trigger(Trigger(**_trigger_data()))
    base = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)
    for minutes in range(3):
        fire_manual("t1", store, store, base + timedelta(minutes=minutes))

    history = execution_history(store, "t1", limit=2)
    assert [r.fired_at for r in history] == [base + timedelta(minutes=2), base + timedelta(minutes=1)]

    summary = execution_summary(store, "t1")
    assert summary.total == 3
    assert summary.by_status["queued"] == 3
    assert execution_summary(store, "other").total == 0
