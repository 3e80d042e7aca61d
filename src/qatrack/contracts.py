"""Capability interfaces for the collaborators around the kernel.

The kernel (scheduler, differ) never calls these; only qatrack.dispatch and
the api layer do.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from qatrack.kernel.execution import ExecutionRecord
from qatrack.kernel.trigger import Trigger


@runtime_checkable
class TriggerStore(Protocol):
    """Persistent store for triggers, execution records and test targets."""

    def new_id(self) -> str:
        """Fresh identifier for a new record."""
        ...

    def get_trigger(self, trigger_id: str) -> Optional[Trigger]: ...

    def list_triggers(self) -> List[Trigger]: ...

    def save_trigger(self, trigger: Trigger) -> None: ...

    def list_due_triggers(self, now: datetime) -> List[Trigger]:
        """Active schedule triggers whose next_scheduled_at is at or before now."""
        ...

    def add_execution(self, record: ExecutionRecord) -> None: ...

    def update_execution(self, record: ExecutionRecord) -> None: ...

    def list_executions(self, trigger_id: Optional[str] = None) -> List[ExecutionRecord]: ...

    def get_test(self, test_id: str) -> Optional[Dict[str, Any]]: ...

    def list_suite_tests(self, suite_id: str) -> List[Dict[str, Any]]:
        """Tests of a suite as dicts with ``execution_order`` and ``test``, in order."""
        ...


@runtime_checkable
class JobGateway(Protocol):
    """Function-invocation gateway that queues a test job for an agent."""

    def enqueue_job(
        self,
        trigger: Trigger,
        test: Dict[str, Any],
        run_id: str,
    ) -> str:
        """Queue one job and return its id."""
        ...
