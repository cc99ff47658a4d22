"""Module entrypoint.

Allows:
    python -m sentry_triage_server
"""

from __future__ import annotations

from sentry_triage_server.cli import main

if __name__ == "__main__":
    main()
