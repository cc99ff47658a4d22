from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from sentry_triage_server.config import ServerConfig
from sentry_triage_server.core.analysis import AnalysisConfig, Analyzer
from sentry_triage_server.core.analysis import service as service_module
from sentry_triage_server.core.ownership import owner_path
from sentry_triage_server.core.store import RecordStore
from sentry_triage_server.server.webhook_server import create_app


@pytest.fixture
def config(tmp_path: Path) -> ServerConfig:
    return ServerConfig(data_dir=tmp_path / "data", max_records=10, analysis=AnalysisConfig(api_key=None))


@pytest.fixture
def client(config: ServerConfig) -> Iterator[TestClient]:
    with TestClient(create_app(config)) as c:
        yield c


def test_health(client: TestClient) -> None:
    r = client.get("/health")

    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["records"] == 0
    assert body["analysis_mode"] == "local"
    assert body["relay_enabled"] is False


def test_webhook_with_hint_and_listing(client: TestClient, error_payload: dict[str, Any]) -> None:
    r = client.post("/webhook", json=error_payload, headers={"Sentry-Hook-Resource": "event"})

    assert r.status_code == 200
    assert r.json() == {"status": "success", "id": "e1", "kind": "ErrorEvent"}

    messages = client.get("/api/messages").json()
    assert messages["count"] == 1
    msg = messages["messages"][0]
    assert msg["id"] == "e1"
    assert msg["category"] == "error"
    assert msg["resource_hint"] == "event"


def test_webhook_accepts_unrecognized_json(client: TestClient) -> None:
    r = client.post("/webhook", json={"hello": "world"})

    assert r.status_code == 200
    assert r.json()["kind"] == "UnrecognizedEvent"


def test_webhook_rejects_non_json(client: TestClient) -> None:
    r = client.post("/webhook", content=b"not json", headers={"Content-Type": "application/json"})

    assert r.status_code == 400


def test_category_filter_and_bad_category(client: TestClient) -> None:
    client.post("/api/test-messages")

    info = client.get("/api/messages", params={"category": "info"}).json()
    assert info["count"] == 1
    assert info["messages"][0]["severity"] == "info"

    assert client.get("/api/messages", params={"category": "nope"}).status_code == 400


def test_delete_and_clear(client: TestClient) -> None:
    ids = client.post("/api/test-messages").json()["ids"]
    assert len(ids) == 3

    r = client.request("DELETE", "/api/messages", json={"ids": [ids[0], "missing"]})
    assert r.json()["deletedCount"] == 1
    remaining = [m["id"] for m in client.get("/api/messages").json()["messages"]]
    assert ids[0] not in remaining

    assert client.delete("/api/messages/all").json()["deletedCount"] == 2
    assert client.get("/api/messages").json()["count"] == 0


def test_info_and_download(client: TestClient, error_payload: dict[str, Any]) -> None:
    client.post("/webhook", json=error_payload)

    info = client.get("/api/messages/info").json()
    assert info["count"] == 1
    assert info["stats"]["error"] == 1
    assert info["size_bytes"] > 0

    r = client.get("/api/messages/download")
    assert r.status_code == 200
    assert "attachment" in r.headers["content-disposition"]
    assert [rec["id"] for rec in r.json()["records"]] == ["e1"]


def test_analyze_local_and_not_found(client: TestClient, error_payload: dict[str, Any]) -> None:
    client.post("/webhook", json=error_payload)

    r = client.post("/api/analyze", json={"messageId": "e1"})
    assert r.status_code == 200
    analysis = r.json()["analysis"]
    assert analysis["shape"] == "error"
    assert analysis["source"] == "local"

    stored = client.get("/api/messages").json()["messages"][0]
    assert stored["diagnostic"]["cause"] == analysis["cause"]

    assert client.post("/api/analyze", json={"messageId": "missing"}).status_code == 404


def test_analyze_timeout_returns_504(
    monkeypatch: pytest.MonkeyPatch, config: ServerConfig, error_payload: dict[str, Any]
) -> None:
    def slow_call(prompt: str, *, cfg: AnalysisConfig) -> str:
        time.sleep(0.5)
        return "1. Cause\nslow"

    monkeypatch.setattr(service_module, "_call_gemini_text", slow_call)
    analyzer = Analyzer(AnalysisConfig(api_key="k", timeout_s=0.05))

    with TestClient(create_app(config, analyzer=analyzer)) as c:
        c.post("/webhook", json=error_payload)
        r = c.post("/api/analyze", json={"messageId": "e1"})
        assert r.status_code == 504
        assert c.get("/api/messages").json()["messages"][0]["diagnostic"] is None


def test_model_key_config(client: TestClient) -> None:
    assert client.get("/api/config/model/status").json()["configured"] is False

    r = client.post("/api/config/model", json={"apiKey": "abcd1234wxyz"})

    assert r.status_code == 200
    assert r.json()["configured"] is True
    assert client.get("/api/config/model/status").json()["masked_key"] == "abcd***wxyz"


def test_logs_tail(client: TestClient) -> None:
    logging.getLogger("sentry_triage_server.tests").warning("marker-line-42")

    r = client.get("/logs", params={"count": 50})

    assert r.status_code == 200
    assert "marker-line-42" in r.text


def test_records_survive_restart(config: ServerConfig, error_payload: dict[str, Any]) -> None:
    with TestClient(create_app(config)) as c:
        c.post("/webhook", json=error_payload)

    store = RecordStore(config.snapshot_path)
    with TestClient(create_app(config, store=store)) as c:
        assert [m["id"] for m in c.get("/api/messages").json()["messages"]] == ["e1"]


def test_health_reports_degraded_store(tmp_path: Path, error_payload: dict[str, Any]) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    config = ServerConfig(data_dir=blocker)

    with TestClient(create_app(config)) as c:
        c.post("/webhook", json=error_payload)
        body = c.get("/health").json()

    assert body["status"] == "degraded"
    assert body["records"] == 1


def test_server_claims_snapshot_dir_while_running(config: ServerConfig) -> None:
    owner = owner_path(config.data_dir)

    with TestClient(create_app(config)):
        assert json.loads(owner.read_text(encoding="utf-8"))["url"] == "http://127.0.0.1:3000"

    assert not owner.exists()


def test_get_single_message(client: TestClient, error_payload: dict[str, Any]) -> None:
    client.post("/webhook", json=error_payload)

    r = client.get("/api/messages/e1")
    assert r.status_code == 200
    assert r.json()["exception_type"] == "TypeError"

    assert client.get("/api/messages/missing").status_code == 404
