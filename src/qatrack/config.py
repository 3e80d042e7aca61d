"""Runtime settings for qatrack.

Settings are plain pydantic models. ``load_settings`` layers an optional JSON
file under ``QATRACK_*`` environment variables; the environment wins.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from qatrack.kernel.schedule import TimeOfDay
from qatrack.kernel.trigger import resolve_timezone

ENV_PREFIX = "QATRACK_"


class Settings(BaseModel):
    """Defaults used when creating, dispatching and reporting on triggers."""
    default_time_of_day: str = "09:00"
    default_day_of_week: int = Field(default=1, ge=0, le=6)
    default_timezone: str = "UTC"
    scheduled_run_prefix: str = "SCHED"
    manual_run_prefix: str = "TRIG"
    webhook_run_prefix: str = "HOOK"
    execution_history_limit: int = Field(default=50, gt=0)
    log_level: str = "WARNING"

    model_config = ConfigDict(extra="forbid")

    @field_validator("default_time_of_day")
    @classmethod
    def validate_time_of_day(cls, v: str) -> str:
        return str(TimeOfDay.parse(v))

    @field_validator("default_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        resolve_timezone(v)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level '{v}'")
        return level


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for name in Settings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            overrides[name] = environ[key]
    return overrides


def load_settings(
    path: Optional[Union[str, os.PathLike, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build Settings from an optional JSON file and the environment."""
    data: Dict = {}
    if path is not None:
        with open(Path(path), 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"settings file {path} must contain a JSON object")
    data.update(_env_overrides(os.environ if environ is None else environ))
    return Settings(**data)
