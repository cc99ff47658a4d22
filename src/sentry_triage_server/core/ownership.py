"""Which process owns a snapshot directory.

A running webhook server claims its data directory by writing its base URL
to ``server.json`` next to the snapshot, and removes the file on shutdown.
Other surfaces (MCP tools, CLI) read the claim and go through the server's
HTTP API instead of rewriting the snapshot behind its back.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

OWNER_FILENAME = "server.json"


def owner_path(data_dir: Path | str) -> Path:
    return Path(data_dir) / OWNER_FILENAME


async def claim_snapshot(data_dir: Path | str, url: str) -> bool:
    """Record `url` as the owner of `data_dir`; False when the file can't be written."""
    path = owner_path(data_dir)
    doc = {"url": url, "pid": os.getpid(), "started_at": datetime.now(UTC).isoformat()}
    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(doc))
    except OSError as e:
        logger.warning("Could not write owner file %s: %s", path, e)
        return False
    logger.info("Claimed %s for %s", path.parent, url)
    return True


async def release_snapshot(data_dir: Path | str) -> None:
    path = owner_path(data_dir)
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove owner file %s: %s", path, e)


async def snapshot_owner(data_dir: Path | str) -> str | None:
    """Base URL of the server that owns `data_dir`, or None when unclaimed."""
    path = owner_path(data_dir)
    if not await aiofiles.os.path.isfile(path):
        return None
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            doc = json.loads(await f.read())
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.warning("Ignoring unreadable owner file %s: %s", path, e)
        return None
    url = doc.get("url") if isinstance(doc, dict) else None
    return url if isinstance(url, str) and url else None
