"""Tests for settings loading."""

import json

import pytest
from pydantic import ValidationError

from qatrack.config import Settings, load_settings


def test_defaults():
    settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.default_time_of_day == "09:00"
    assert settings.default_day_of_week == 1
    assert settings.scheduled_run_prefix == "SCHED"
    assert settings.execution_history_limit == 50


def test_file_then_environment(tmp_path):
    path = tmp_path / "qatrack.json"
    path.write_text(json.dumps({"default_timezone": "Europe/Paris", "manual_run_prefix": "RUN"}), encoding="utf-8")
    settings = load_settings(path, environ={"QATRACK_MANUAL_RUN_PREFIX": "ENV", "QATRACK_LOG_LEVEL": "debug"})
    assert settings.default_timezone == "Europe/Paris"
    assert settings.manual_run_prefix == "ENV"
    assert settings.log_level == "DEBUG"


def test_environment_values_are_coerced():
    settings = load_settings(environ={"QATRACK_EXECUTION_HISTORY_LIMIT": "10", "QATRACK_DEFAULT_DAY_OF_WEEK": "0"})
    assert settings.execution_history_limit == 10
    assert settings.default_day_of_week == 0


def test_reads_process_environment(monkeypatch):
    monkeypatch.setenv("QATRACK_WEBHOOK_RUN_PREFIX", "DEPLOY")
    assert load_settings().webhook_run_prefix == "DEPLOY"


@pytest.mark.parametrize("overrides", [
    {"default_timezone": "Not/AZone"},
    {"default_time_of_day": "25:00"},
    {"default_day_of_week": 7},
    {"execution_history_limit": 0},
    {"log_level": "chatty"},
    {"unknown_key": 1},
])
def test_invalid_settings_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_settings_file_must_be_object(tmp_path):
    path = tmp_path / "qatrack.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(path, environ={})
