# src/logging/context.py - v3
"""Per-run logging context.

The orchestrator sets the run id and pipeline name when a run starts and the
state machine updates the step on every transition. Formatters read a
snapshot through get_context(), so concurrent runs in separate tasks never
see each other's values.
"""

from __future__ import annotations

import contextvars
from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class LogContext:
    run_id: str | None = None
    pipeline: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Fields that are set, for the JSON ``context`` key."""
        return {k: v for k, v in asdict(self).items() if v is not None}


_EMPTY = LogContext()
_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "visiontester_log_context", default=_EMPTY
)


def get_context() -> LogContext:
    return _current.get()


def set_run_context(run_id: str | None, pipeline: str) -> None:
    """Start a fresh context for a run; any previous step is dropped."""
    _current.set(LogContext(run_id=run_id, pipeline=pipeline))


def set_step_context(step: str | None) -> None:
    _current.set(replace(_current.get(), step=step))


def clear_context() -> None:
    _current.set(_EMPTY)
