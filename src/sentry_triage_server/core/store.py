"""Capacity-bounded record store with a durable JSON snapshot.

All mutations, including the periodic safety-net rewrite, go through one
asyncio lock, so the in-memory view and the snapshot on disk converge after
every call and never see interleaved partial writes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from .categories import Category, category_of, count_categories
from .models import ErrorDiagnostic, GeneralDiagnostic, NormalizedRecord

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "sentry-triage-records"
SNAPSHOT_VERSION = 1
DEFAULT_CAPACITY = 100
DEFAULT_FLUSH_INTERVAL_S = 300.0


def encode_snapshot(records: Iterable[NormalizedRecord], *, saved_at: datetime) -> str:
    """Serialize records into the self-describing snapshot document."""
    doc = {
        "format": SNAPSHOT_FORMAT,
        "version": SNAPSHOT_VERSION,
        "saved_at": saved_at.isoformat(),
        "records": [r.model_dump(mode="json") for r in records],
    }
    return json.dumps(doc, ensure_ascii=False, indent=2)


def decode_snapshot(text: str) -> list[NormalizedRecord]:
    """Parse a snapshot document; a bare JSON list of records is accepted too.

    Raises ValueError when the document itself is unusable. Individual
    records that fail validation are skipped.
    """
    doc = json.loads(text)
    if isinstance(doc, dict):
        items = doc.get("records")
    else:
        items = doc
    if not isinstance(items, list):
        raise ValueError("snapshot has no record list")

    out: list[NormalizedRecord] = []
    for i, item in enumerate(items):
        try:
            out.append(NormalizedRecord.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid record #%s in snapshot: %s", i, e.error_count())
    return out


class RecordStore:
    """Insertion-ordered records keyed by id.

    `path=None` keeps the store purely in memory.
    """

    def __init__(
        self,
        path: Path | str | None,
        *,
        capacity: int = DEFAULT_CAPACITY,
        flush_interval_s: float = DEFAULT_FLUSH_INTERVAL_S,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if flush_interval_s <= 0:
            raise ValueError("flush_interval_s must be > 0")
        self._path = Path(path) if path is not None else None
        self._capacity = capacity
        self._flush_interval_s = flush_interval_s
        self._records: dict[str, NormalizedRecord] = {}
        self._lock = asyncio.Lock()
        self._flush_task: asyncio.Task[None] | None = None
        self.last_saved_at: datetime | None = None
        self.last_error: str | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    # Reads

    def get(self, record_id: str) -> NormalizedRecord | None:
        return self._records.get(record_id)

    def list(
        self,
        limit: int | None = None,
        *,
        category: Category | None = None,
    ) -> list[NormalizedRecord]:
        """Most recent `limit` records (all when None), oldest first."""
        records = list(self._records.values())
        if category is not None:
            records = [r for r in records if category_of(r) is category]
        if limit is not None:
            if limit <= 0:
                return []
            records = records[-limit:]
        return records

    def stats(self) -> dict[str, int]:
        return count_categories(self._records.values())

    async def info(self) -> dict[str, Any]:
        size: int | None = None
        if self._path is not None and await aiofiles.os.path.isfile(self._path):
            size = (await aiofiles.os.stat(self._path)).st_size
        return {
            "count": len(self._records),
            "capacity": self._capacity,
            "path": str(self._path) if self._path is not None else None,
            "size_bytes": size,
            "last_saved_at": self.last_saved_at.isoformat() if self.last_saved_at else None,
            "last_error": self.last_error,
        }

    # Mutations

    async def append_or_merge(self, record: NormalizedRecord) -> NormalizedRecord:
        """Insert a new record or merge onto the one with the same id.

        A merge takes every field from `record` except that an existing
        diagnostic survives when `record` carries none.
        """
        async with self._lock:
            existing = self._records.get(record.id)
            if existing is None:
                stored = record
                self._records[record.id] = stored
                while len(self._records) > self._capacity:
                    evicted = next(iter(self._records))
                    del self._records[evicted]
                    logger.debug("Evicted oldest record %s (capacity %s)", evicted, self._capacity)
            else:
                stored = record
                if record.diagnostic is None and existing.diagnostic is not None:
                    stored = record.with_diagnostic(existing.diagnostic)
                self._records[record.id] = stored
                logger.debug("Merged record %s", record.id)
            await self._persist_locked()
        return stored

    async def attach_diagnostic(
        self,
        record_id: str,
        diagnostic: ErrorDiagnostic | GeneralDiagnostic,
    ) -> NormalizedRecord | None:
        """Merge a diagnostic onto a stored record; None when the id is gone."""
        async with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                return None
            stored = existing.with_diagnostic(diagnostic)
            self._records[record_id] = stored
            await self._persist_locked()
        return stored

    async def delete(self, ids: Iterable[str]) -> int:
        """Remove every record whose id is in `ids`; absent ids are ignored."""
        wanted = set(ids)
        async with self._lock:
            doomed = [rid for rid in self._records if rid in wanted]
            for rid in doomed:
                del self._records[rid]
            await self._persist_locked()
        if doomed:
            logger.info("Deleted %s record(s)", len(doomed))
        return len(doomed)

    async def clear(self) -> int:
        async with self._lock:
            removed = len(self._records)
            self._records.clear()
            await self._persist_locked()
        logger.info("Cleared record store (%s record(s) removed)", removed)
        return removed

    # Durability

    async def load(self) -> int:
        """Replace the in-memory view with the last durable snapshot.

        A missing, unreadable or malformed snapshot leaves the store empty.
        """
        async with self._lock:
            self._records.clear()
            if self._path is None:
                return 0
            if not await aiofiles.os.path.isfile(self._path):
                logger.info("No snapshot at %s; starting with an empty store", self._path)
                return 0
            try:
                async with aiofiles.open(self._path, encoding="utf-8") as f:
                    text = await f.read()
                records = decode_snapshot(text)
            except (OSError, UnicodeDecodeError, ValueError) as e:
                logger.warning("Could not load snapshot %s (%s); starting empty", self._path, e)
                self.last_error = f"load failed: {e}"
                return 0

            for r in records[-self._capacity :]:
                self._records[r.id] = r
            logger.info("Loaded %s record(s) from %s", len(self._records), self._path)
            return len(self._records)

    async def flush(self) -> bool:
        """Force a durable rewrite; returns False when it failed."""
        async with self._lock:
            return await self._persist_locked()

    async def _persist_locked(self) -> bool:
        if self._path is None:
            return True
        now = datetime.now(UTC)
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            text = encode_snapshot(self._records.values(), saved_at=now)
            await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
            async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                await f.write(text)
            await aiofiles.os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError) as e:
            logger.exception("Failed to write snapshot %s", self._path)
            self.last_error = f"save failed: {e}"
            return False
        self.last_saved_at = now
        self.last_error = None
        return True

    async def _flush_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval_s)
            if await self.flush():
                logger.debug("Periodic snapshot written (%s record(s))", len(self._records))

    def start_periodic_flush(self) -> asyncio.Task[None]:
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_periodically())
        return self._flush_task

    async def close(self) -> None:
        """Stop the periodic rewrite and write a final snapshot."""
        task, self._flush_task = self._flush_task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.flush()


def snapshot_path(data_dir: Path | str) -> Path:
    return Path(data_dir) / "records.json"
