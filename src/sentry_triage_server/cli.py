from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Sequence

import httpx

from sentry_triage_server.core.samples import sample_payloads
from sentry_triage_server.tools.records import analyze_record_impl, list_records_impl

DEFAULT_URL = "http://localhost:3000/webhook"


def _cmd_serve(args: argparse.Namespace) -> None:
    from sentry_triage_server.server import webhook_server

    # ServerConfig.from_env picks these up.
    if args.host:
        os.environ["SENTRY_TRIAGE_HOST"] = args.host
    if args.port is not None:
        os.environ["PORT"] = str(args.port)
    webhook_server.main()


def _cmd_send_samples(args: argparse.Namespace) -> None:
    failures = 0
    with httpx.Client(timeout=10.0) as client:
        for hint, payload in sample_payloads():
            try:
                r = client.post(args.url, json=payload, headers={"Sentry-Hook-Resource": hint})
                r.raise_for_status()
            except httpx.HTTPError as e:
                failures += 1
                print(f"{hint}: failed ({e})", file=sys.stderr)
                continue
            print(f"{hint}: {r.json()}")
    if failures:
        raise SystemExit(1)


def _cmd_list(args: argparse.Namespace) -> None:
    out = asyncio.run(list_records_impl(data_dir=args.data_dir, limit=args.limit, category=args.category))
    for r in out["records"]:
        mark = "*" if r["analyzed"] else " "
        print(f"{mark} {r['id']} {r['occurred_at']} [{r['category']}] {r['kind']}: {r['message']}")
    print(f"\nShowing {out['count']} of {out['total']} records.")


def _cmd_analyze(args: argparse.Namespace) -> None:
    out = asyncio.run(analyze_record_impl(record_id=args.record_id, data_dir=args.data_dir, force=args.force))
    diagnostic = out.get("diagnostic") or {}
    skip = {"shape", "raw_text"}
    print(f"{out['id']} ({out['kind']}, {out['severity']})")
    for key, value in diagnostic.items():
        if key in skip or value is None:
            continue
        print(f"\n## {key}\n{value}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sentry-triage",
        description="Sentry webhook receiver with record storage and diagnostics.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the webhook HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (default: SENTRY_TRIAGE_HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000)")
    serve.set_defaults(func=_cmd_serve)

    samples = sub.add_parser("send-samples", help="POST the sample payloads to a running server")
    samples.add_argument("--url", default=DEFAULT_URL, help=f"Webhook URL (default: {DEFAULT_URL})")
    samples.set_defaults(func=_cmd_send_samples)

    lst = sub.add_parser("list", help="Print stored records")
    lst.add_argument("--data-dir", default=None, help="Snapshot directory (default: SENTRY_TRIAGE_DATA_DIR or ./data)")
    lst.add_argument("--limit", type=int, default=None, help="Most recent N records (default: 20)")
    lst.add_argument("--category", default=None, help="error, warning, info, debug or other")
    lst.set_defaults(func=_cmd_list)

    analyze = sub.add_parser("analyze", help="Analyze one stored record")
    analyze.add_argument("record_id")
    analyze.add_argument("--data-dir", default=None)
    analyze.add_argument("--force", action="store_true", help="Re-run even if a diagnostic exists")
    analyze.set_defaults(func=_cmd_analyze)
    return p


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)


if __name__ == "__main__":
    main()
