# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types: run parameters, input documents, outputs
and run records are all imported from core.models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from visiontester.utils.base64 import strip_data_uri_prefix

PipelineKind = Literal["direct-multimodal", "ocr-then-parse"]
RunStatus = Literal["pending", "success", "error", "cancelled"]
FileKind = Literal["pdf", "image"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"success", "error", "cancelled"})


# === PARAMETERS ===


class OcrStepParameters(BaseModel):
    """Prompt pair (and optional sampling overrides) for the OCR turn."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str
    user_prompt: str
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    num_ctx: int | None = Field(default=None, ge=1)


class RunParameters(BaseModel):
    """Sampling configuration snapshot. Immutable once a run starts."""

    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, ge=1)
    num_ctx: int = Field(default=8192, ge=1)
    system_prompt: str = ""
    user_prompt: str = ""
    output_schema: dict[str, Any] | None = None
    schema_id: str | None = None
    ocr_step: OcrStepParameters | None = None
    top_k: int | None = None
    top_p: float | None = None


# === INPUT ===


class InputDocument(BaseModel):
    """Document handed to a pipeline.

    ``content`` is raw base64 without a ``data:...;base64,`` prefix; any
    prefix coming from storage or UI layers is stripped on construction.
    """

    file_name: str
    file_kind: FileKind
    mime_type: str
    size: int = Field(ge=0)
    content: str = ""
    file_ref: str | None = None
    thumbnail: str | None = None

    @field_validator("content")
    @classmethod
    def _strip_prefix(cls, v: str) -> str:
        return strip_data_uri_prefix(v)

    def metadata(self, file_ref: str | None = None) -> InputDocument:
        """Copy without content, suitable for a run record."""
        return self.model_copy(
            update={"content": "", "file_ref": file_ref or self.file_ref}
        )


# === OUTPUT ===


class ValidationFinding(BaseModel):
    """A single schema-validation violation."""

    field: str
    message: str
    schema_path: str = ""
    keyword: str
    params: dict[str, Any] = Field(default_factory=dict)


class Output(BaseModel):
    """Model output plus parse/validation results and token accounting."""

    raw: str = ""
    parsed: Any = None
    ocr_text: str | None = None
    thinking: str | None = None
    error: str | None = None
    is_valid: bool | None = None
    validation_errors: list[ValidationFinding] = Field(default_factory=list)
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_duration: int | None = None


# === RUN RECORDS ===


class RunDraft(BaseModel):
    """Everything the ledger needs to register a new run."""

    pipeline: PipelineKind
    model_name: str
    ocr_model: str | None = None
    parameters: RunParameters
    input: InputDocument
    tags: list[str] = Field(default_factory=list)


class RunRecord(BaseModel):
    """The unit of history: one pipeline execution."""

    id: str
    created_at: datetime
    pipeline: PipelineKind
    model_name: str
    ocr_model: str | None = None
    parameters: RunParameters
    input: InputDocument
    output: Output = Field(default_factory=Output)
    duration_ms: int = 0
    status: RunStatus = "pending"
    tags: list[str] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
