# src/llm/ollama_transport.py - v2
"""Ollama transport implementing BaseTransport.

Uses the ollama Python SDK's AsyncClient. Each call runs as its own task so
that cancel() can abort it; a new call supersedes any call still in flight on
the same instance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import ollama

from visiontester.llm.base_transport import (
    BaseTransport,
    CancellationToken,
    InferenceResponseError,
    ServerUnreachableError,
    TransportCancelledError,
)
from visiontester.llm.models import ChatRequest, ChatResponse, ModelInfo

logger = logging.getLogger(__name__)


class OllamaTransport(BaseTransport):
    """Ollama local inference transport."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        timeout: float | None = None,
        client: Any = None,
    ) -> None:
        self._host = host
        self._client = client or ollama.AsyncClient(host=host, timeout=timeout)
        self._task: asyncio.Future[Any] | None = None
        self._token: CancellationToken | None = None

    @property
    def host(self) -> str:
        return self._host

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            logger.debug("Cancelling in-flight request")
            self._task.cancel()
        self._task = None
        self._token = None

    async def call(self, request: ChatRequest) -> ChatResponse:
        if self.in_flight:
            logger.warning("New request supersedes the call still in flight")
        self.cancel()

        token = CancellationToken()
        task = asyncio.ensure_future(self._client.chat(**request.to_payload()))
        self._task, self._token = task, token

        t0 = time.monotonic()
        try:
            raw = await task
        except asyncio.CancelledError:
            if token.cancelled:
                raise TransportCancelledError("Request was cancelled") from None
            raise
        except ollama.ResponseError as e:
            raise InferenceResponseError(
                e.error or f"Request failed with status {e.status_code}",
                status_code=e.status_code,
            ) from e
        except ConnectionError as e:
            raise ServerUnreachableError(str(e) or "Cannot connect to server") from e
        finally:
            if self._task is task:
                self._task = None
                self._token = None

        if token.cancelled:
            raise TransportCancelledError("Request was cancelled")

        latency = int((time.monotonic() - t0) * 1000)
        logger.debug(
            "Chat call to %s (%s) finished in %dms",
            request.model, "vision" if request.has_images else "text", latency,
        )
        try:
            return ChatResponse.from_raw(raw)
        except ValueError as e:
            raise InferenceResponseError(str(e)) from e

    async def list_models(self) -> list[ModelInfo]:
        try:
            resp = await self._client.list()
        except ollama.ResponseError as e:
            raise InferenceResponseError(
                e.error or "Failed to fetch models", status_code=e.status_code,
            ) from e
        except ConnectionError as e:
            raise ServerUnreachableError(str(e) or "Cannot connect to server") from e

        models = resp.get("models", []) if hasattr(resp, "get") else resp.models
        return [ModelInfo.from_raw(m) for m in models or []]
