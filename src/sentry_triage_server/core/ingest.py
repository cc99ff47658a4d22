"""Webhook ingestion: classify, store, relay."""

from __future__ import annotations

import logging

from .classifier import classify
from .models import NormalizedRecord, RecordKind
from .relay import ChatRelay
from .store import RecordStore

logger = logging.getLogger(__name__)


class IngestService:
    def __init__(self, store: RecordStore, relay: ChatRelay | None = None) -> None:
        self.store = store
        self.relay = relay

    async def ingest(self, resource_hint: str | None, payload: object) -> NormalizedRecord:
        """Normalize one payload, persist it and schedule the chat relay.

        The relay runs in the background so a slow chat endpoint never delays
        the webhook acknowledgement.
        """
        record = classify(resource_hint, payload)
        stored = await self.store.append_or_merge(record)
        self._log_headline(stored)

        if self.relay is not None and stored.kind in (RecordKind.ERROR_EVENT, RecordKind.ISSUE_EVENT):
            self.relay.schedule(stored)
        return stored

    @staticmethod
    def _log_headline(record: NormalizedRecord) -> None:
        if record.kind is RecordKind.ERROR_EVENT:
            logger.info(
                "Error event %s project=%s level=%s message=%s exception=%s",
                record.id,
                record.project,
                record.severity,
                record.message,
                record.exception_type,
            )
        elif record.kind is RecordKind.ISSUE_EVENT:
            logger.info(
                "Issue event %s action=%s level=%s title=%s culprit=%s",
                record.id,
                record.action,
                record.severity,
                record.title,
                record.culprit,
            )
        elif record.kind is RecordKind.PARSE_FAILURE:
            logger.warning("Stored unparseable payload as %s: %s", record.id, record.failure_reason)
        else:
            logger.info("Unrecognized event %s (hint=%s)", record.id, record.resource_hint)
