# src/tracking/usage.py - v1
"""Per-turn token and duration accounting.

Two-step runs report the field-wise sum of both turns; a value missing on
either turn counts as zero.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from visiontester.llm.models import ChatResponse

logger = logging.getLogger(__name__)


class TurnUsage(BaseModel):
    """Server-reported usage of one model turn."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_duration: int | None = None

    @classmethod
    def from_response(cls, response: ChatResponse) -> TurnUsage:
        return cls(
            prompt_tokens=response.prompt_eval_count,
            completion_tokens=response.eval_count,
            total_duration=response.total_duration,
        )


def sum_usage(*turns: TurnUsage) -> TurnUsage:
    """Field-wise sum treating None as 0."""
    if not turns:
        return TurnUsage()
    return TurnUsage(
        prompt_tokens=sum(t.prompt_tokens or 0 for t in turns),
        completion_tokens=sum(t.completion_tokens or 0 for t in turns),
        total_duration=sum(t.total_duration or 0 for t in turns),
    )


class TurnRecord(BaseModel):
    """One model turn as seen by the usage logger."""

    call_id: str
    timestamp: datetime
    step: str
    model: str
    usage: TurnUsage = Field(default_factory=TurnUsage)
    latency_ms: int = 0
    status: str = "success"


class UsageLogger:
    """Accumulates turn records during a pipeline run."""

    def __init__(self) -> None:
        self._records: list[TurnRecord] = []

    def record(
        self,
        step: str,
        model: str,
        response: ChatResponse | None = None,
        latency_ms: int = 0,
        status: str = "success",
    ) -> TurnRecord:
        """Record a model turn.

        Args:
            step: Pipeline step (e.g. "direct", "ocr", "parse").
            model: Model name used for the turn.
            response: Response carrying usage, None when the turn failed.
            latency_ms: Wall-clock time of the call.
            status: Turn status (success, error, cancelled).
        """
        usage = TurnUsage.from_response(response) if response else TurnUsage()
        record = TurnRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            step=step,
            model=model,
            usage=usage,
            latency_ms=latency_ms,
            status=status,
        )
        self._records.append(record)
        logger.debug(
            "Turn %s on %s: %s prompt / %s completion tokens, %dms (%s)",
            step, model, usage.prompt_tokens, usage.completion_tokens,
            latency_ms, status,
        )
        return record

    @property
    def records(self) -> list[TurnRecord]:
        return list(self._records)

    @property
    def total(self) -> TurnUsage:
        """Summed usage of successful turns."""
        return sum_usage(*(r.usage for r in self._records if r.status == "success"))

    @property
    def total_calls(self) -> int:
        return len(self._records)
