from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest

from sentry_triage_server.core.models import NormalizedRecord, RecordKind
from sentry_triage_server.core.relay import (
    ERROR_EVENT_TYPE,
    ChatRelay,
    format_markdown,
    level_color,
    relay_fields,
)

MakeRecord = Callable[..., NormalizedRecord]


@pytest.mark.parametrize(
    ("level", "color"),
    [("error", "warning"), ("FATAL", "warning"), ("warning", "warning"), ("info", "info"), ("debug", "info"), (None, "info")],
)
def test_level_color(level: str | None, color: str) -> None:
    assert level_color(level) == color


def test_format_markdown_for_error_event(make_record: MakeRecord) -> None:
    built = relay_fields(make_record("e1", message="boom"))
    assert built is not None
    event_type, fields = built

    text = format_markdown(event_type, fields, datetime(2025, 12, 30, 8, 0, tzinfo=UTC))

    lines = text.splitlines()
    assert lines[0] == "### Sentry Error Event notification"
    assert "> **Message**: boom" in lines
    assert '> **Level**: <font color="warning">error</font>' in lines
    assert lines[-1] == "> Notified at: 2025-12-30 08:00:00 UTC"


def test_format_markdown_renders_every_field_for_unknown_type() -> None:
    text = format_markdown("Custom", [("a", "1"), ("Level", "info")])

    assert "> **a**: 1" in text
    assert "> **Level**: info" in text


def test_only_errors_and_issues_are_relayed(make_record: MakeRecord) -> None:
    assert relay_fields(make_record(kind=RecordKind.ISSUE_EVENT, issue_id="i1")) is not None
    assert relay_fields(make_record(kind=RecordKind.UNRECOGNIZED_EVENT)) is None
    assert relay_fields(make_record(kind=RecordKind.PARSE_FAILURE)) is None


@pytest.mark.asyncio
async def test_send_posts_markdown_body() -> None:
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, json={"errcode": 0})

    relay = ChatRelay("https://chat.example/hook", transport=httpx.MockTransport(handler))

    assert await relay.send(ERROR_EVENT_TYPE, [("Project", "p")]) is True
    assert captured[0]["msgtype"] == "markdown"
    assert captured[0]["markdown"]["content"].startswith("### Sentry Error Event notification")


@pytest.mark.asyncio
async def test_send_reports_failures_without_raising() -> None:
    def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    assert await ChatRelay("https://x", transport=httpx.MockTransport(server_error)).send("t", []) is False
    assert await ChatRelay("https://x", transport=httpx.MockTransport(unreachable)).send("t", []) is False


@pytest.mark.asyncio
async def test_disabled_relay_is_noop(make_record: MakeRecord) -> None:
    relay = ChatRelay(None)

    assert relay.enabled is False
    assert await relay.send("t", []) is False
    assert relay.schedule(make_record()) is None


@pytest.mark.asyncio
async def test_schedule_runs_in_background(make_record: MakeRecord) -> None:
    hits: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(str(request.url))
        return httpx.Response(200)

    relay = ChatRelay("https://chat.example/hook", transport=httpx.MockTransport(handler))

    task = relay.schedule(make_record())
    assert task is not None
    await relay.drain()

    assert task.result() is True
    assert hits == ["https://chat.example/hook"]
