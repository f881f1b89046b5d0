# src/core/errors.py - v1
"""Pipeline error taxonomy.

Every failure surfaced by a pipeline maps to exactly one ErrorKind. The
PipelineError exception carries the kind, a human-readable message and
optional technical details; it is never persisted as such, only its message
lands in the run output.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from visiontester.core.models import RunRecord


class ErrorKind(str, Enum):
    """Closed set of actionable error categories."""

    MISSING_FILE = "MISSING_FILE"
    MISSING_SCHEMA = "MISSING_SCHEMA"
    SERVER_UNREACHABLE = "SERVER_UNREACHABLE"
    MODEL_NOT_AVAILABLE = "MODEL_NOT_AVAILABLE"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    SCHEMA_VALIDATION_ERROR = "SCHEMA_VALIDATION_ERROR"
    OCR_EXTRACTION_FAILED = "OCR_EXTRACTION_FAILED"
    OCR_EMPTY_RESULT = "OCR_EMPTY_RESULT"
    PARSE_STEP_FAILED = "PARSE_STEP_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class PipelineError(Exception):
    """Categorized pipeline failure raised to the caller."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: str | None = None,
        run: RunRecord | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.details = details
        self.run = run
        super().__init__(f"[{kind.value}] {message}")

    def with_run(self, run: RunRecord) -> PipelineError:
        """Attach the finalized run record and return self."""
        self.run = run
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.kind.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        if self.run is not None:
            data["run_id"] = self.run.id
        return data


class OrchestratorBusyError(RuntimeError):
    """Raised when a run is started while another is still active."""
