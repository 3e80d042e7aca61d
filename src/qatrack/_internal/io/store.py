"""In-memory and JSON-file implementations of the store and job gateway ports.

Both keep one document shaped like the hosted tables:

    {
      "triggers": [...],        # agent_scheduled_triggers
      "executions": [...],      # agent_trigger_executions
      "tests": {id: {...}},     # nocode_tests
      "suites": {id: [{"execution_order": n, "test_id": id}, ...]},
      "jobs": [...]             # agent_job_queue
    }
"""

import json
import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from qatrack._internal.canonical_json import canonical_dumps, to_jsonable
from qatrack.kernel.execution import ExecutionRecord
from qatrack.kernel.trigger import Trigger, as_utc

logger = logging.getLogger(__name__)


def _empty_document() -> Dict[str, Any]:
    return {"triggers": [], "executions": [], "tests": {}, "suites": {}, "jobs": []}


class InMemoryStore:
    """Store + gateway backed by plain Python objects."""

    def __init__(
        self,
        document: Optional[Dict[str, Any]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        doc = _empty_document()
        if document:
            doc.update(document)
        self._triggers: Dict[str, Trigger] = {}
        for row in doc["triggers"]:
            trigger = row if isinstance(row, Trigger) else Trigger(**row)
            self._triggers[trigger.id] = trigger
        self._executions: Dict[str, ExecutionRecord] = {}
        for row in doc["executions"]:
            record = row if isinstance(row, ExecutionRecord) else ExecutionRecord(**row)
            self._executions[record.id] = record
        self.tests: Dict[str, Dict[str, Any]] = dict(doc["tests"])
        self.suites: Dict[str, List[Dict[str, Any]]] = {k: list(v) for k, v in doc["suites"].items()}
        self.jobs: List[Dict[str, Any]] = list(doc["jobs"])
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))

    def new_id(self) -> str:
        return self._new_id()

    def _changed(self) -> None:
        """Hook for subclasses that persist after each write."""

    # Triggers

    def get_trigger(self, trigger_id: str) -> Optional[Trigger]:
        return self._triggers.get(trigger_id)

    def list_triggers(self) -> List[Trigger]:
        return list(self._triggers.values())

    def save_trigger(self, trigger: Trigger) -> None:
        self._triggers[trigger.id] = trigger
        self._changed()

    def list_due_triggers(self, now: datetime) -> List[Trigger]:
        now_utc = as_utc(now)
        return [
            t for t in self._triggers.values()
            if t.is_scheduled
            and t.is_active
            and t.next_scheduled_at is not None
            and as_utc(t.next_scheduled_at) <= now_utc
        ]

    # Executions

    def add_execution(self, record: ExecutionRecord) -> None:
        if record.id in self._executions:
            raise ValueError(f"execution '{record.id}' already exists")
        self._executions[record.id] = record
        self._changed()

    def update_execution(self, record: ExecutionRecord) -> None:
        if record.id not in self._executions:
            raise KeyError(f"execution '{record.id}' not found")
        self._executions[record.id] = record
        self._changed()

    def list_executions(self, trigger_id: Optional[str] = None) -> List[ExecutionRecord]:
        return [r for r in self._executions.values() if trigger_id is None or r.trigger_id == trigger_id]

    # Targets

    def get_test(self, test_id: str) -> Optional[Dict[str, Any]]:
        test = self.tests.get(test_id)
        if test is None:
            return None
        return {"id": test_id, **test}

    def list_suite_tests(self, suite_id: str) -> List[Dict[str, Any]]:
        members = sorted(self.suites.get(suite_id, []), key=lambda m: m.get("execution_order", 0))
        return [
            {"execution_order": m.get("execution_order", 0), "test": self.get_test(m.get("test_id", ""))}
            for m in members
        ]

    # Job gateway

    def enqueue_job(self, trigger: Trigger, test: Dict[str, Any], run_id: str) -> str:
        job_id = self.new_id()
        self.jobs.append({
            "id": job_id,
            "project_id": trigger.project_id,
            "test_id": test.get("id"),
            "run_id": run_id,
            "base_url": test.get("base_url"),
            "steps": test.get("steps"),
            "agent_id": trigger.agent_id,
            "status": "pending",
        })
        self._changed()
        return job_id

    def to_document(self) -> Dict[str, Any]:
        return {
            "triggers": [to_jsonable(t) for t in sorted(self._triggers.values(), key=lambda t: t.id)],
            "executions": [to_jsonable(r) for r in sorted(self._executions.values(), key=lambda r: r.id)],
            "tests": self.tests,
            "suites": self.suites,
            "jobs": self.jobs,
        }


class JsonFileStore(InMemoryStore):
    """InMemoryStore that rewrites its JSON file after every change."""

    def __init__(
        self,
        path: Union[str, os.PathLike, Path],
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.path = Path(path)
        document = None
        if self.path.exists():
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
            if not isinstance(document, dict):
                raise ValueError(f"store file {self.path} must contain a JSON object")
        else:
            logger.info("store file %s does not exist; starting empty", self.path)
        super().__init__(document, id_factory=id_factory)

    def _changed(self) -> None:
        self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(canonical_dumps(self.to_document()) + "\n", encoding="utf-8")
