# src/llm/models.py - v2
"""Inference wire types: ChatMessage, ChatOptions, ChatRequest, ChatResponse, ModelInfo.

Mirrors the local inference server's chat endpoint:
``{model, messages[], format?, stream: false, options?}`` in,
``{model, created_at, message: {role, content, thinking?}, done, ...}`` out.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """Single message in a conversation."""

    role: Literal["user", "assistant", "system"]
    content: str
    images: list[str] | None = None  # raw base64, no data URI prefix


class ChatOptions(BaseModel):
    """Sampling options (server field names)."""

    temperature: float | None = None
    num_predict: int | None = None
    num_ctx: int | None = None
    top_k: int | None = None
    top_p: float | None = None


class ChatRequest(BaseModel):
    """One model turn."""

    model: str
    messages: list[ChatMessage]
    format: dict[str, Any] | None = None
    stream: Literal[False] = False
    options: ChatOptions | None = None

    @property
    def has_images(self) -> bool:
        return any(m.images for m in self.messages)

    def to_payload(self) -> dict[str, Any]:
        """Keyword arguments for the client's chat call, unset fields omitted."""
        return self.model_dump(exclude_none=True)


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a dict or an SDK response object."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    if hasattr(obj, "get"):
        return obj.get(key, default)
    return getattr(obj, key, default)


class ChatResponse(BaseModel):
    """Normalized response from the inference server."""

    model: str = ""
    created_at: str | None = None
    content: str
    thinking: str | None = None
    done: bool = True
    total_duration: int | None = None
    prompt_eval_count: int | None = None
    eval_count: int | None = None
    raw_response: Any = Field(default=None, exclude=True)

    @classmethod
    def from_raw(cls, raw: Any) -> ChatResponse:
        """Build from a raw dict or an ``ollama`` SDK ChatResponse.

        Raises:
            ValueError: If the response carries no message content.
        """
        message = _get(raw, "message")
        content = _get(message, "content")
        if content is None:
            raise ValueError("Invalid response: missing message content")
        created_at = _get(raw, "created_at")
        return cls(
            model=_get(raw, "model", "") or "",
            created_at=str(created_at) if created_at is not None else None,
            content=content,
            thinking=_get(message, "thinking") or None,
            done=bool(_get(raw, "done", True)),
            total_duration=_get(raw, "total_duration"),
            prompt_eval_count=_get(raw, "prompt_eval_count"),
            eval_count=_get(raw, "eval_count"),
            raw_response=raw,
        )


class ModelInfo(BaseModel):
    """Installed model metadata, for model pickers."""

    name: str
    size: int = 0
    family: str | None = None
    parameter_size: str | None = None
    modified_at: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> ModelInfo:
        details = _get(raw, "details")
        modified_at = _get(raw, "modified_at")
        return cls(
            name=_get(raw, "model") or _get(raw, "name") or "",
            size=_get(raw, "size") or 0,
            family=_get(details, "family"),
            parameter_size=_get(details, "parameter_size"),
            modified_at=str(modified_at) if modified_at is not None else None,
        )
