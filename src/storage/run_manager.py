# src/storage/run_manager.py - v2
"""Run lifecycle helpers shared by the ledger backends.

A record is created pending and finalized exactly once; terminal records are
never re-opened.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from visiontester.core.models import TERMINAL_STATUSES, Output, RunDraft, RunRecord, RunStatus
from visiontester.storage.errors import RunAlreadyFinalizedError

CANCELLED_MESSAGE = "Request was cancelled."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_run_id(timestamp: datetime | None = None) -> str:
    """Generate a run_id: yyyymmdd_hhmmss_{uuid4_short}."""
    ts = timestamp or utc_now()
    short_uuid = uuid.uuid4().hex[:8]
    return f"{ts.strftime('%Y%m%d_%H%M%S')}_{short_uuid}"


def generate_file_ref() -> str:
    return f"file_{uuid.uuid4().hex}"


def new_record(draft: RunDraft, file_ref: str | None = None) -> RunRecord:
    """Pending record for a draft; input content is never retained."""
    created_at = utc_now()
    return RunRecord(
        id=generate_run_id(created_at),
        created_at=created_at,
        pipeline=draft.pipeline,
        model_name=draft.model_name,
        ocr_model=draft.ocr_model,
        parameters=draft.parameters,
        input=draft.input.metadata(file_ref),
        tags=list(draft.tags),
    )


def finalize_record(
    record: RunRecord,
    status: RunStatus,
    output: Output,
    duration_ms: int,
) -> RunRecord:
    """Copy of ``record`` in its terminal state.

    Raises:
        RunAlreadyFinalizedError: If the record is already terminal.
        ValueError: If ``status`` is not terminal.
    """
    if record.is_terminal:
        raise RunAlreadyFinalizedError(record.id, record.status)
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"Not a terminal status: {status!r}")
    return record.model_copy(
        update={
            "status": status,
            "output": output,
            "duration_ms": max(0, int(duration_ms)),
        }
    )


def failed_output(message: str, output: Output | None = None) -> Output:
    """Output for a failed run: given output (or empty) with ``error`` set."""
    base = output or Output()
    return base.model_copy(update={"error": message})


def cancelled_output(output: Output | None = None) -> Output:
    return failed_output(CANCELLED_MESSAGE, output)
