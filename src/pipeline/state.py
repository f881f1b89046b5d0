# src/pipeline/state.py - v2
"""Mutable per-run state owned by the orchestrator.

Direct pipeline:
    IDLE -> BUILDING -> AWAITING_MODEL -> EXTRACTING -> VALIDATING -> TERMINAL
OCR-then-parse pipeline:
    IDLE -> BUILDING_OCR -> AWAITING_OCR -> VALIDATING_OCR_TEXT
         -> BUILDING_PARSE -> AWAITING_PARSE -> EXTRACTING -> VALIDATING -> TERMINAL
"""

from __future__ import annotations

import logging
import time
from enum import Enum

from pydantic import BaseModel, Field

from visiontester.core.models import PipelineKind, RunRecord
from visiontester.llm.base_transport import CancellationToken
from visiontester.logging.context import set_step_context
from visiontester.tracking.usage import TurnUsage, sum_usage

logger = logging.getLogger(__name__)


class RunStage(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    AWAITING_MODEL = "awaiting_model"
    BUILDING_OCR = "building_ocr"
    AWAITING_OCR = "awaiting_ocr"
    VALIDATING_OCR_TEXT = "validating_ocr_text"
    BUILDING_PARSE = "building_parse"
    AWAITING_PARSE = "awaiting_parse"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    TERMINAL = "terminal"


class RunContext(BaseModel):
    """State of the run in progress.

    ``started_at`` is a monotonic timestamp taken at invocation; every
    duration reported for the run is measured from it.
    """

    model_config = {"arbitrary_types_allowed": True}

    pipeline: PipelineKind
    started_at: float = Field(default_factory=time.monotonic)
    token: CancellationToken = Field(default_factory=CancellationToken)
    stage: RunStage = RunStage.IDLE
    record: RunRecord | None = None
    turns: list[TurnUsage] = Field(default_factory=list)

    @property
    def run_id(self) -> str | None:
        return self.record.id if self.record is not None else None

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def advance(self, stage: RunStage) -> None:
        """Move to ``stage`` and tag subsequent log lines with it."""
        logger.debug("Run %s: %s -> %s", self.run_id, self.stage.value, stage.value)
        self.stage = stage
        set_step_context(stage.value)

    def elapsed_ms(self) -> int:
        return round((time.monotonic() - self.started_at) * 1000)

    def usage(self) -> TurnUsage:
        """Summed usage of the turns completed so far."""
        return sum_usage(*self.turns)
