# src/llm/base_transport.py - v1
"""Abstract inference transport interface.

A transport issues one HTTP call per model turn and allows at most one call
in flight per instance: starting a new call cancels the previous one. The
cancellation token is owned by the instance, so separate orchestrators never
interfere with each other.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from visiontester.llm.models import ChatRequest, ChatResponse, ModelInfo


class TransportError(Exception):
    """Base class for failures surfaced by a transport."""


class TransportCancelledError(TransportError):
    """The in-flight call was aborted through cancel()."""


class ServerUnreachableError(TransportError):
    """The inference server could not be reached."""


class InferenceResponseError(TransportError):
    """The server answered with a non-success status."""

    def __init__(self, message: str, status_code: int = -1) -> None:
        self.status_code = status_code
        super().__init__(message)


class CancellationToken:
    """Per-call cancellation flag."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class BaseTransport(ABC):
    """Single-flight interface to the inference server."""

    @abstractmethod
    async def call(self, request: ChatRequest) -> ChatResponse:
        """Run one model turn.

        Raises:
            TransportCancelledError: If cancel() aborted this call.
            InferenceResponseError: On a non-success response.
            ServerUnreachableError: If the server cannot be reached.
        """

    @abstractmethod
    def cancel(self) -> None:
        """Abort the in-flight call, if any. Idempotent."""

    @property
    @abstractmethod
    def in_flight(self) -> bool:
        """Whether a call is currently pending."""

    @abstractmethod
    async def list_models(self) -> list[ModelInfo]:
        """Installed models reported by the server."""
