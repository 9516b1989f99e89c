"""
Shared fixtures for the QMS test suite.
"""

from __future__ import annotations

from typing import Any

import pytest

from qms.inspection.backends import InMemoryBackend
from qms.inspection.store import RecordStore


def make_input(**overrides: Any) -> dict[str, Any]:
    """A valid inspection payload; keyword overrides replace fields."""
    data: dict[str, Any] = {
        "product": "Shirt - Classic Cotton",
        "vendor": "Fresh Tailors",
        "inspector": "John Smith",
        "batchId": "BATCH-2024-001",
        "scores": {
            "fabric": 8.5, "stitching": 8, "fit": 7.5,
            "color": 9, "packaging": 8, "labels": 8,
        },
        "notes": "Good quality with minor fit issues.",
        "timestamp": 1_700_000_000_000,
    }
    data.update(overrides)
    return data


@pytest.fixture
def valid_input() -> dict[str, Any]:
    return make_input()


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend) -> RecordStore:
    return RecordStore(backend)
