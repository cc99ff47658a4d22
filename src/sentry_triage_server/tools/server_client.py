"""Client for a running webhook server's record API.

Used by the tools when a server has claimed the snapshot directory, so every
mutation goes through the process that owns the store.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from sentry_triage_server.core.models import NormalizedRecord

logger = logging.getLogger(__name__)

# Reads cover a full model analysis on the server side.
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=300.0)


class ServerUnavailable(RuntimeError):
    """The owning server did not answer or answered with an unexpected error."""


class WebhookServerClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                r = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ServerUnavailable(f"webhook server at {self.base_url} is not reachable: {e}") from e
        logger.debug("%s %s -> %s", method, path, r.status_code)
        return r

    @staticmethod
    def _check(r: httpx.Response) -> dict[str, Any]:
        if r.is_success:
            return r.json()
        raise ServerUnavailable(f"webhook server returned {r.status_code}: {r.text[:200]}")

    async def list(self, limit: int | None = None, category: str | None = None) -> list[NormalizedRecord]:
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if category is not None:
            params["category"] = category
        body = self._check(await self._request("GET", "/api/messages", params=params))
        return [NormalizedRecord.model_validate(m) for m in body["messages"]]

    async def info(self) -> dict[str, Any]:
        return self._check(await self._request("GET", "/api/messages/info"))

    async def get(self, record_id: str) -> NormalizedRecord:
        """Raises KeyError for an unknown id."""
        r = await self._request("GET", f"/api/messages/{quote(record_id, safe='')}")
        if r.status_code == 404:
            raise KeyError(record_id)
        return NormalizedRecord.model_validate(self._check(r))

    async def analyze(self, record_id: str, *, force: bool = False) -> NormalizedRecord:
        """Raises KeyError for an unknown id and TimeoutError when the server gave up."""
        r = await self._request("POST", "/api/analyze", json={"messageId": record_id, "force": force})
        if r.status_code == 404:
            raise KeyError(record_id)
        if r.status_code == 504:
            raise TimeoutError(f"analysis of {record_id} timed out on the server")
        return NormalizedRecord.model_validate(self._check(r)["message"])

    async def delete(self, ids: Sequence[str]) -> int:
        body = self._check(await self._request("DELETE", "/api/messages", json={"ids": list(ids)}))
        return int(body["deletedCount"])

    async def ingest(self, resource_hint: str | None, payload: dict[str, Any]) -> NormalizedRecord:
        headers = {"Sentry-Hook-Resource": resource_hint} if resource_hint else {}
        body = self._check(await self._request("POST", "/webhook", json=payload, headers=headers))
        return await self.get(body["id"])
