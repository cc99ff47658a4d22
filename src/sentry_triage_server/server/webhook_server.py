"""HTTP entrypoint: Sentry webhook receiver and record API.

Run locally:
    python -m sentry_triage_server.server.webhook_server
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from sentry_triage_server.config import ServerConfig
from sentry_triage_server.core.analysis import Analyzer, analyze_record
from sentry_triage_server.core.categories import category_of, parse_category
from sentry_triage_server.core.ingest import IngestService
from sentry_triage_server.core.log_buffer import LogBuffer, LogBufferHandler
from sentry_triage_server.core.models import NormalizedRecord
from sentry_triage_server.core.ownership import claim_snapshot, release_snapshot
from sentry_triage_server.core.relay import ChatRelay
from sentry_triage_server.core.samples import sample_payloads
from sentry_triage_server.core.store import RecordStore, encode_snapshot

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(config: ServerConfig) -> None:
    """Console logging plus an optional per-day log file."""
    level = getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if config.log_dir is not None:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        day = datetime.now(UTC).strftime("%Y-%m-%d")
        handler = logging.FileHandler(config.log_dir / f"sentry-webhook-{day}.log", encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


class DeleteRequest(BaseModel):
    ids: list[str]


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId")
    force: bool = False


class ApiKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(alias="apiKey")


def record_to_dict(record: NormalizedRecord) -> dict[str, Any]:
    d = record.model_dump(mode="json")
    d["category"] = category_of(record).value
    return d


def create_app(
    config: ServerConfig,
    store: RecordStore | None = None,
    analyzer: Analyzer | None = None,
    relay: ChatRelay | None = None,
) -> FastAPI:
    """Build the FastAPI app; collaborators default to ones built from `config`."""
    if store is None:
        store = RecordStore(
            config.snapshot_path,
            capacity=config.max_records,
            flush_interval_s=config.flush_interval_s,
        )
    if analyzer is None:
        analyzer = Analyzer(config.analysis)
    if relay is None:
        relay = ChatRelay(config.chat_webhook_url)

    log_buffer = LogBuffer(config.log_buffer_lines)
    buffer_handler = LogBufferHandler(log_buffer)
    buffer_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    ingest = IngestService(store, relay)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        root = logging.getLogger()
        root.addHandler(buffer_handler)
        snapshot_dir = store.path.parent if store.path is not None else None
        owned = False
        try:
            await store.load()
            store.start_periodic_flush()
            if snapshot_dir is not None:
                owned = await claim_snapshot(snapshot_dir, config.local_url)
            LOGGER.info(
                "Webhook server ready (records=%s, relay=%s, analysis=%s)",
                len(store),
                "on" if relay.enabled else "off",
                analyzer.credential_status()["mode"],
            )
            yield
        finally:
            await relay.drain()
            await store.close()
            if owned and snapshot_dir is not None:
                await release_snapshot(snapshot_dir)
            root.removeHandler(buffer_handler)

    app = FastAPI(title="sentry-triage", lifespan=lifespan)
    app.state.store = store
    app.state.analyzer = analyzer
    app.state.relay = relay
    app.state.log_buffer = log_buffer

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "degraded" if store.last_error else "ok",
            "time": datetime.now(UTC).isoformat(),
            "records": len(store),
            "last_error": store.last_error,
            "relay_enabled": relay.enabled,
            "analysis_mode": analyzer.credential_status()["mode"],
        }

    @app.post("/webhook")
    async def webhook(
        request: Request,
        sentry_hook_resource: str | None = Header(default=None),
    ) -> dict[str, Any]:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            LOGGER.warning("Rejected webhook body that is not JSON: %s", e)
            raise HTTPException(status_code=400, detail="Request body must be JSON") from e
        record = await ingest.ingest(sentry_hook_resource, payload)
        return {"status": "success", "id": record.id, "kind": record.kind.value}

    @app.get("/api/messages")
    async def list_messages(
        limit: int | None = Query(default=None, ge=1),
        category: str | None = None,
    ) -> dict[str, Any]:
        try:
            cat = parse_category(category) if category else None
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        records = store.list(limit, category=cat)
        return {"count": len(records), "messages": [record_to_dict(r) for r in records]}

    @app.delete("/api/messages")
    async def delete_messages(body: DeleteRequest) -> dict[str, Any]:
        deleted = await store.delete(body.ids)
        return {"status": "success", "deletedCount": deleted}

    @app.delete("/api/messages/all")
    async def clear_messages() -> dict[str, Any]:
        deleted = await store.clear()
        return {"status": "success", "deletedCount": deleted}

    @app.get("/api/messages/info")
    async def messages_info() -> dict[str, Any]:
        return {**(await store.info()), "stats": store.stats()}

    @app.get("/api/messages/download")
    async def download_messages() -> Response:
        now = datetime.now(UTC)
        content = encode_snapshot(store.list(), saved_at=now)
        filename = f"sentry-records-{now.strftime('%Y-%m-%d')}.json"
        return Response(
            content=content,
            media_type="application/json",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.get("/api/messages/{record_id}")
    async def get_message(record_id: str) -> dict[str, Any]:
        record = store.get(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Record not found: {record_id}")
        return record_to_dict(record)

    @app.post("/api/analyze")
    async def analyze(body: AnalyzeRequest) -> dict[str, Any]:
        try:
            record = await analyze_record(store, analyzer, body.message_id, force=body.force)
        except KeyError as e:
            raise HTTPException(status_code=404, detail=f"Record not found: {body.message_id}") from e
        except TimeoutError as e:
            raise HTTPException(status_code=504, detail="Analysis timed out") from e
        diagnostic = record.diagnostic
        return {
            "status": "success",
            "analysis": diagnostic.model_dump(mode="json") if diagnostic is not None else None,
            "message": record_to_dict(record),
        }

    @app.get("/api/config/model/status")
    async def model_status() -> dict[str, Any]:
        return analyzer.credential_status()

    @app.post("/api/config/model")
    async def set_model_key(body: ApiKeyRequest) -> dict[str, Any]:
        analyzer.set_api_key(body.api_key)
        return {"status": "success", **analyzer.credential_status()}

    @app.post("/api/test-messages")
    async def test_messages() -> dict[str, Any]:
        ids = []
        for hint, payload in sample_payloads():
            record = await ingest.ingest(hint, payload)
            ids.append(record.id)
        return {"status": "success", "ids": ids}

    @app.get("/logs", response_class=PlainTextResponse)
    async def logs(count: int = Query(default=100, ge=1)) -> str:
        return "\n".join(log_buffer.tail(count))

    return app


def main() -> None:
    """Start the webhook server with uvicorn."""
    config = ServerConfig.from_env()
    _configure_logging(config)
    LOGGER.info("Listening on %s:%s (snapshot %s)", config.host, config.port, config.snapshot_path)
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
