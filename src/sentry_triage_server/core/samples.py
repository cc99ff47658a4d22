"""Built-in sample webhook payloads for smoke-testing a deployment."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


def sample_payloads(now: datetime | None = None) -> list[tuple[str, dict[str, Any]]]:
    """(resource hint, payload) pairs: an error, an issue and an info event.

    Ids embed the current time in milliseconds so repeated sends create new
    records instead of merging onto earlier ones.
    """
    now = now or datetime.now(UTC)
    stamp = int(now.timestamp() * 1000)
    iso = now.isoformat()

    error_event = {
        "project": "sample-project",
        "event": {
            "event_id": f"sample-event-{stamp}",
            "level": "error",
            "timestamp": iso,
            "logentry": {"formatted": "Sample error message: simulated failure"},
            "exception": {
                "values": [
                    {
                        "type": "RuntimeError",
                        "value": "Sample exception: simulated exception",
                        "stacktrace": {
                            "frames": [
                                {"filename": "test.js", "lineno": 42, "function": "testFunction"},
                                {"filename": "app.js", "lineno": 123, "function": "processData"},
                            ]
                        },
                    }
                ]
            },
        },
    }
    issue_event = {
        "action": "created",
        "issue": {
            "id": f"sample-issue-{stamp}",
            "title": "Sample issue: simulated problem",
            "culprit": "test.js in testFunction",
            "level": "warning",
            "lastSeen": iso,
        },
    }
    info_event = {
        "project": "sample-project-info",
        "event": {
            "event_id": f"sample-info-{stamp}",
            "level": "info",
            "timestamp": iso,
            "logentry": {"formatted": "Sample info message: simulated notice"},
        },
    }
    return [("event", error_event), ("issue", issue_event), ("event", info_event)]
