"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.

When a webhook server has claimed the snapshot directory, every call goes
through its HTTP API so the server stays the only writer. Otherwise the call
loads the snapshot, applies the operation (which rewrites the snapshot when
it mutates), and returns.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from sentry_triage_server.config import resolve_max_records
from sentry_triage_server.core.analysis import Analyzer, analyze_record, resolve_analysis_config
from sentry_triage_server.core.categories import category_of, parse_category
from sentry_triage_server.core.ingest import IngestService
from sentry_triage_server.core.models import NormalizedRecord
from sentry_triage_server.core.ownership import owner_path, snapshot_owner
from sentry_triage_server.core.store import RecordStore, snapshot_path
from sentry_triage_server.tools.server_client import ServerUnavailable, WebhookServerClient

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
HARD_LIMIT = 1000
DATA_DIR_ENV = "SENTRY_TRIAGE_DATA_DIR"


def resolve_data_dir(data_dir: str | None) -> Path:
    return Path(data_dir or os.getenv(DATA_DIR_ENV) or "./data")


async def open_store(data_dir: str | None = None, *, capacity: int | None = None) -> RecordStore:
    """Load the store persisted under `data_dir` (or SENTRY_TRIAGE_DATA_DIR).

    Capacity defaults to SENTRY_TRIAGE_MAX_RECORDS, the same bound the
    webhook server uses, so a rewrite never drops records the server kept.
    """
    if capacity is None:
        capacity = resolve_max_records()
    store = RecordStore(snapshot_path(resolve_data_dir(data_dir)), capacity=capacity)
    await store.load()
    return store


def connect_server(url: str) -> WebhookServerClient:
    return WebhookServerClient(url)


async def owning_server(data_dir: str | None) -> WebhookServerClient | None:
    """Client for the server that claimed `data_dir`, if any."""
    url = await snapshot_owner(resolve_data_dir(data_dir))
    if url is None:
        return None
    logger.debug("Snapshot is owned by %s; using its HTTP API", url)
    return connect_server(url)


def _unavailable(e: ServerUnavailable, data_dir: str | None) -> ValueError:
    path = owner_path(resolve_data_dir(data_dir))
    return ValueError(f"{e}. If that server is no longer running, remove {path}.")


def record_summary(record: NormalizedRecord, *, include_diagnostic: bool = False) -> dict[str, Any]:
    """Convert a record into a compact JSON-serializable dict."""
    d: dict[str, Any] = {
        "id": record.id,
        "kind": record.kind.value,
        "category": category_of(record).value,
        "severity": record.severity,
        "occurred_at": record.occurred_at.isoformat(),
        "message": record.message,
        "analyzed": record.diagnostic is not None,
    }
    if record.exception_type is not None:
        d["exception"] = f"{record.exception_type}: {record.exception_value}"
    if record.culprit is not None:
        d["culprit"] = record.culprit
    if include_diagnostic and record.diagnostic is not None:
        d["diagnostic"] = record.diagnostic.model_dump(mode="json")
    return d


async def list_records_impl(
    *,
    data_dir: str | None = None,
    limit: int | None = None,
    category: str | None = None,
    include_diagnostics: bool = False,
) -> dict[str, Any]:
    """Implementation for the `list_records` MCP tool."""
    if limit is None:
        limit = DEFAULT_LIMIT
    if limit <= 0:
        raise ValueError("limit must be > 0")
    limit = min(limit, HARD_LIMIT)
    cat = parse_category(category) if category else None

    server = await owning_server(data_dir)
    if server is not None:
        try:
            records = await server.list(limit, cat.value if cat else None)
            info = await server.info()
        except ServerUnavailable as e:
            raise _unavailable(e, data_dir) from e
        total, stats = info["count"], info["stats"]
    else:
        store = await open_store(data_dir)
        records = store.list(limit, category=cat)
        total, stats = len(store), store.stats()

    return {
        "count": len(records),
        "total": total,
        "stats": stats,
        "records": [record_summary(r, include_diagnostic=include_diagnostics) for r in records],
    }


async def analyze_record_impl(
    *,
    record_id: str,
    data_dir: str | None = None,
    force: bool = False,
) -> dict[str, Any]:
    """Implementation for the `analyze_record` MCP tool.

    Raises ValueError for an unknown id so the MCP client sees a tool error.
    """
    server = await owning_server(data_dir)
    try:
        if server is not None:
            record = await server.analyze(record_id, force=force)
        else:
            store = await open_store(data_dir)
            analyzer = Analyzer(resolve_analysis_config(None))
            record = await analyze_record(store, analyzer, record_id, force=force)
    except KeyError as e:
        raise ValueError(f"Record not found: {record_id}") from e
    except ServerUnavailable as e:
        raise _unavailable(e, data_dir) from e
    return record_summary(record, include_diagnostic=True)


async def delete_records_impl(
    *,
    ids: Sequence[str],
    data_dir: str | None = None,
) -> dict[str, Any]:
    if not ids:
        raise ValueError("ids must not be empty")

    server = await owning_server(data_dir)
    if server is not None:
        try:
            deleted = await server.delete(ids)
            remaining = (await server.info())["count"]
        except ServerUnavailable as e:
            raise _unavailable(e, data_dir) from e
        return {"deleted_count": deleted, "remaining": remaining}

    store = await open_store(data_dir)
    deleted = await store.delete(ids)
    return {"deleted_count": deleted, "remaining": len(store)}


async def ingest_payload_impl(
    *,
    payload: dict[str, Any],
    resource_hint: str | None = None,
    data_dir: str | None = None,
) -> dict[str, Any]:
    """Classify and store one payload.

    Against a detached snapshot nothing is relayed to chat; through a running
    server the payload is an ordinary webhook delivery.
    """
    server = await owning_server(data_dir)
    if server is not None:
        try:
            record = await server.ingest(resource_hint, payload)
        except (KeyError, ServerUnavailable) as e:
            raise ValueError(f"Ingest through {server.base_url} failed: {e}") from e
        return record_summary(record)

    store = await open_store(data_dir)
    record = await IngestService(store).ingest(resource_hint, payload)
    return record_summary(record)
