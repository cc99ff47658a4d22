"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from sentry_triage_server.core.categories import Category
from sentry_triage_server.core.models import NormalizedRecord
from sentry_triage_server.tools.records import DATA_DIR_ENV, resolve_data_dir


def help_text() -> str:
    categories = ", ".join(c.value for c in Category)
    return (
        "Resources:\n"
        "- app://sentry-triage/help\n"
        "- app://sentry-triage/schemas/record\n"
        "\nTools:\n"
        "- list_records(limit, category, include_diagnostics)\n"
        "- analyze_record(record_id, force)\n"
        "- delete_records(ids)\n"
        "- ingest_payload(payload, resource_hint)\n"
        f"\nCategories: {categories}\n"
        f"Snapshot directory ({DATA_DIR_ENV}): {resolve_data_dir(None).resolve()}\n"
    )


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://sentry-triage/help")
    def help_resource() -> str:
        """Return the available resources and tools."""
        return help_text()

    @mcp.resource("app://sentry-triage/schemas/record")
    def record_schema() -> dict[str, Any]:
        """Return the JSON schema for stored records."""
        return NormalizedRecord.model_json_schema()
