from __future__ import annotations

from typing import Any

import pytest

from sentry_triage_server.server import mcp_server


def test_main_runs_stdio_without_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(mcp_server.mcp, "run", lambda **kwargs: calls.append(kwargs))

    mcp_server.main()

    assert calls == [{"transport": "stdio"}]
