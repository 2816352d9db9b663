from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

HTTP transport seam. Adapters build payloads and parse bodies; the transport
only moves JSON and server-sent events.
"""

import json
import logging
from typing import Any, AsyncIterator, Mapping, Protocol

import httpx

from .errors import LLMInvalidResponseError

logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"


class Transport(Protocol):
    async def send(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any] | None:
        """POST `payload` and return the decoded body (None when empty)."""
        ...

    def stream(self, path: str, payload: Mapping[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """POST `payload` and yield each decoded server-sent event."""
        ...


class HttpxTransport:
    """
    `Transport` over an `httpx.AsyncClient`.

    An injected client is shared and never closed here; when none is given a
    client is created on first use and released by `aclose()`. Paths are
    joined to `base_url` unless the client carries its own.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_s: float = 30.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._base_url = base_url
        self._timeout_s = timeout_s
        self._headers = {"Content-Type": "application/json", **dict(headers or {})}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url or "",
                timeout=httpx.Timeout(self._timeout_s),
            )
        return self._client

    def _url(self, client: httpx.AsyncClient, path: str) -> str:
        # A client with its own base_url resolves relative paths itself.
        if self._base_url and not str(client.base_url):
            return self._base_url.rstrip("/") + path
        return path

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any] | None:
        client = self._get_client()
        resp = await client.post(
            self._url(client, path), json=dict(payload), headers=self._headers
        )
        resp.raise_for_status()

        if not resp.content.strip():
            return None
        try:
            body = resp.json()
        except ValueError as e:
            raise LLMInvalidResponseError(
                f"Provider returned a non-JSON body (status {resp.status_code})"
            ) from e
        if not isinstance(body, dict):
            raise LLMInvalidResponseError("Provider returned a non-object JSON body")
        return body

    async def stream(
        self, path: str, payload: Mapping[str, Any]
    ) -> AsyncIterator[dict[str, Any]]:
        client = self._get_client()
        async with client.stream(
            "POST", self._url(client, path), json=dict(payload), headers=self._headers
        ) as resp:
            # Read the error body before raising so the diagnostic can show it.
            if resp.status_code >= 400:
                await resp.aread()
            resp.raise_for_status()

            async for line in resp.aiter_lines():
                if not line or not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == SSE_DONE:
                    return
                if not data:
                    continue
                try:
                    event = json.loads(data)
                except ValueError as e:
                    raise LLMInvalidResponseError(
                        f"Malformed server-sent event: {data[:200]}"
                    ) from e
                if isinstance(event, dict):
                    yield event
                else:
                    logger.debug("Skipping non-object server-sent event: %r", event)
