"""MCP server over the durable record snapshot.

This module wires together:
- Tools: list, analyze, delete and ingest records
- Resources: help text and the record JSON schema

Run locally (stdio):
    python -m sentry_triage_server.server.mcp_stdio
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from sentry_triage_server.resources.registry import register_resources
from sentry_triage_server.tools.records import (
    analyze_record_impl,
    delete_records_impl,
    ingest_payload_impl,
    list_records_impl,
)

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Log to stderr; stdout carries the MCP protocol."""
    level_name = os.getenv("SENTRY_TRIAGE_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


mcp = FastMCP("sentry-triage", json_response=True)

register_resources(mcp)


@mcp.tool()
async def list_records(
    limit: int | None = None,
    category: str | None = None,
    include_diagnostics: bool = False,
) -> dict[str, Any]:
    """Return the most recent stored records, oldest first.

    Parameters
    ----------
    limit:
        Maximum number of records (default 20).
    category:
        One of error, warning, info, debug, other. Case-insensitive.
    include_diagnostics:
        When true, include each record's diagnostic if it has one.

    Returns
    -------
    dict:
        {"count": int, "total": int, "stats": dict, "records": list[dict]}
    """
    return await list_records_impl(
        limit=limit,
        category=category,
        include_diagnostics=include_diagnostics,
    )


@mcp.tool()
async def analyze_record(record_id: str, force: bool = False) -> dict[str, Any]:
    """Diagnose one record and store the result.

    Uses the configured model when GEMINI_API_KEY is set, otherwise a local
    category-based analysis. A record that already has a diagnostic is
    returned unchanged unless `force` is true.
    """
    return await analyze_record_impl(record_id=record_id, force=force)


@mcp.tool()
async def delete_records(ids: Sequence[str]) -> dict[str, Any]:
    """Delete records by id. Unknown ids are ignored."""
    return await delete_records_impl(ids=list(ids))


@mcp.tool()
async def ingest_payload(payload: dict[str, Any], resource_hint: str | None = None) -> dict[str, Any]:
    """Normalize and store a raw Sentry webhook payload.

    `resource_hint` mirrors the Sentry-Hook-Resource header (event, error,
    event_alert, issue). Unrecognized payloads are still stored.
    """
    return await ingest_payload_impl(payload=payload, resource_hint=resource_hint)


def main() -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
