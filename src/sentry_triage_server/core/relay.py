"""Markdown summaries of new records, posted to a chat webhook."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from .models import NormalizedRecord, RecordKind

logger = logging.getLogger(__name__)

ERROR_EVENT_TYPE = "Error Event"
ISSUE_EVENT_TYPE = "Issue Event"
LEVEL_LABEL = "Level"

Fields = list[tuple[str, str]]


def level_color(level: str | None) -> str:
    """Chat font color for a severity."""
    if (level or "").strip().lower() in ("error", "fatal", "warning"):
        return "warning"
    return "info"


def relay_fields(record: NormalizedRecord) -> tuple[str, Fields] | None:
    """Event type and labeled fields for a relayable record, else None."""
    if record.kind is RecordKind.ERROR_EVENT:
        return ERROR_EVENT_TYPE, [
            ("Project", record.project or ""),
            ("Event ID", record.event_id or ""),
            ("Message", record.message or ""),
            (LEVEL_LABEL, record.severity),
            ("Occurred At", record.occurred_at.isoformat()),
            ("Exception Type", record.exception_type or ""),
            ("Exception Value", record.exception_value or ""),
        ]
    if record.kind is RecordKind.ISSUE_EVENT:
        return ISSUE_EVENT_TYPE, [
            ("Issue ID", record.issue_id or ""),
            ("Action", record.action or ""),
            ("Title", record.title or ""),
            ("Culprit", record.culprit or ""),
            (LEVEL_LABEL, record.severity),
        ]
    return None


def format_markdown(event_type: str, fields: Fields, now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    lines = [f"### Sentry {event_type} notification"]
    for label, value in fields:
        if label == LEVEL_LABEL and event_type in (ERROR_EVENT_TYPE, ISSUE_EVENT_TYPE):
            value = f'<font color="{level_color(value)}">{value}</font>'
        lines.append(f"> **{label}**: {value}")
    lines.append("")
    lines.append(f"> Notified at: {now.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    return "\n".join(lines) + "\n"


class ChatRelay:
    """Posts markdown messages to a chat webhook.

    A relay without a URL is disabled and every send is a no-op. Sends never
    raise; failures are logged and reported as False.
    """

    def __init__(
        self,
        webhook_url: str | None,
        *,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = (webhook_url or "").strip() or None
        self._timeout_s = timeout_s
        self._transport = transport
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def enabled(self) -> bool:
        return self._url is not None

    async def send(self, event_type: str, fields: Fields) -> bool:
        if self._url is None:
            return False
        body: dict[str, Any] = {
            "msgtype": "markdown",
            "markdown": {"content": format_markdown(event_type, fields)},
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                r = await client.post(self._url, json=body)
        except httpx.HTTPError as e:
            logger.warning("Chat relay failed for %s: %s", event_type, e)
            return False
        if not 200 <= r.status_code < 300:
            logger.warning("Chat relay returned HTTP %s for %s", r.status_code, event_type)
            return False
        logger.info("Chat relay sent %s notification", event_type)
        return True

    async def send_record(self, record: NormalizedRecord) -> bool:
        built = relay_fields(record)
        if built is None:
            return False
        return await self.send(*built)

    def schedule(self, record: NormalizedRecord) -> asyncio.Task[bool] | None:
        """Relay in the background; the caller does not wait for delivery."""
        if not self.enabled or relay_fields(record) is None:
            return None
        task = asyncio.create_task(self.send_record(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for background sends still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
