"""Pytest configuration for tests.

No sys.path hacks - tests should import from installed qatrack package.
"""

import itertools
import os
from datetime import datetime, timezone

import pytest

from qatrack._internal.io.store import InMemoryStore


# 2024-01-03 is a Wednesday
WEDNESDAY_NOON_UTC = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return WEDNESDAY_NOON_UTC


@pytest.fixture
def id_factory():
    """Deterministic ids: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def store(id_factory):
    """Store holding one test and a three-member suite."""
    return InMemoryStore(
        {
            "tests": {
                "test-login": {"name": "Login", "base_url": "https://app.example.com", "steps": [{"action": "click"}]},
                "test-cart": {"name": "Cart", "base_url": "https://app.example.com", "steps": []},
                "test-checkout": {"name": "Checkout", "base_url": "https://app.example.com", "steps": []},
            },
            "suites": {
                "suite-smoke": [
                    {"execution_order": 2, "test_id": "test-checkout"},
                    {"execution_order": 0, "test_id": "test-login"},
                    {"execution_order": 1, "test_id": "test-cart"},
                ],
            },
        },
        id_factory=id_factory,
    )


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep QATRACK_* variables from the caller's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("QATRACK_"):
            monkeypatch.delenv(key, raising=False)
