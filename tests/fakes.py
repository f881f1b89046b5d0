# tests/fakes.py - v1
"""Test doubles and sample payloads shared across unit tests."""

from __future__ import annotations

import asyncio
from typing import Any

from visiontester.llm.base_transport import BaseTransport, TransportCancelledError
from visiontester.llm.models import ChatRequest, ChatResponse, ModelInfo

PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="

INVOICE_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "invoice_number": {"type": "string"},
        "total": {"type": "number", "minimum": 0},
    },
    "required": ["invoice_number", "total"],
}


def make_response(
    content: str,
    prompt_eval_count: int | None = 10,
    eval_count: int | None = 5,
    total_duration: int | None = 1000,
    thinking: str | None = None,
) -> ChatResponse:
    return ChatResponse(
        model="test-model",
        content=content,
        thinking=thinking,
        prompt_eval_count=prompt_eval_count,
        eval_count=eval_count,
        total_duration=total_duration,
    )


class FakeTransport(BaseTransport):
    """Scripted transport.

    Each call pops the next scripted item: a ChatResponse is returned, an
    exception is raised. With ``block=True`` calls wait until resolve() or
    cancel(); with ``honour_cancel=False`` cancel() is recorded but the call
    keeps waiting for resolve().
    """

    def __init__(
        self,
        responses: list[ChatResponse | BaseException] | None = None,
        block: bool = False,
        honour_cancel: bool = True,
    ) -> None:
        self.responses = list(responses or [])
        self.requests: list[ChatRequest] = []
        self.block = block
        self.honour_cancel = honour_cancel
        self.cancel_calls = 0
        self.started = asyncio.Event()
        self._pending: asyncio.Future[ChatResponse] | None = None
        self._cancelled_by_us = False

    async def call(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        self.started.set()
        if self.block:
            self._cancelled_by_us = False
            self._pending = asyncio.get_running_loop().create_future()
            try:
                return await self._pending
            except asyncio.CancelledError:
                if self._cancelled_by_us:
                    raise TransportCancelledError("Request was cancelled") from None
                raise
            finally:
                self._pending = None
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def resolve(self, response: ChatResponse) -> None:
        assert self._pending is not None
        self._pending.set_result(response)

    def cancel(self) -> None:
        self.cancel_calls += 1
        if not self.honour_cancel:
            return
        if self._pending is not None and not self._pending.done():
            self._cancelled_by_us = True
            self._pending.cancel()

    @property
    def in_flight(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def list_models(self) -> list[ModelInfo]:
        return [ModelInfo(name="qwen2.5vl:7b"), ModelInfo(name="qwen2.5:7b")]


