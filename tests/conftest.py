from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from sentry_triage_server.core.models import NormalizedRecord, RecordKind, StackFrame
from sentry_triage_server.core.store import RecordStore


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 12, 30, 8, 12, 1, tzinfo=UTC)


@pytest.fixture
def error_payload() -> dict[str, Any]:
    return {
        "project": "checkout",
        "event": {
            "event_id": "e1",
            "level": "error",
            "timestamp": 1700000000,
            "logentry": {"formatted": "Cannot read properties of undefined (reading 'total')"},
            "exception": {
                "values": [
                    {
                        "type": "TypeError",
                        "value": "Cannot read properties of undefined (reading 'total')",
                        "stacktrace": {
                            "frames": [
                                {"filename": "cart.js", "lineno": 42, "function": "sumCart"},
                                {"filename": "app.js", "lineno": 123, "function": "checkout"},
                            ]
                        },
                    }
                ]
            },
        },
    }


@pytest.fixture
def issue_payload() -> dict[str, Any]:
    return {
        "action": "created",
        "issue": {
            "id": "i1",
            "title": "Slow query on /orders",
            "culprit": "orders.py in list_orders",
            "level": "warning",
            "lastSeen": "2025-12-30T08:00:00Z",
        },
    }


@pytest.fixture
def make_record(now: datetime) -> Callable[..., NormalizedRecord]:
    def _make(record_id: str = "r1", **overrides: Any) -> NormalizedRecord:
        fields: dict[str, Any] = {
            "id": record_id,
            "kind": RecordKind.ERROR_EVENT,
            "occurred_at": now,
            "received_at": now,
            "severity": "error",
            "message": "boom",
            "project": "checkout",
            "event_id": record_id,
            "exception_type": "RuntimeError",
            "exception_value": "boom",
            "frames": (StackFrame(file="app.py", line="10", function="run"),),
        }
        fields.update(overrides)
        return NormalizedRecord(**fields)

    return _make


@pytest.fixture
def snapshot_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "records.json"


@pytest.fixture
def store(snapshot_file: Path) -> RecordStore:
    return RecordStore(snapshot_file, capacity=5)
