"""Entrypoint for the MCP server over stdio.

Prefer importing from :mod:`server.mcp_server`.
"""

from sentry_triage_server.server.mcp_server import main

if __name__ == "__main__":
    main()
