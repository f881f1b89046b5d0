# src/storage/models.py - v2
"""Storage-side models: offloaded document content and history queries."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from visiontester.core.models import PipelineKind, RunRecord, RunStatus


class StoredFile(BaseModel):
    """Document content offloaded from a run record."""

    file_ref: str
    file_name: str
    mime_type: str
    size: int
    content: str
    created_at: datetime


class RunQuery(BaseModel):
    """History filter. Unset fields match everything."""

    model_name: str | None = None
    pipeline: PipelineKind | None = None
    status: RunStatus | None = None
    limit: int | None = None

    def matches(self, record: RunRecord) -> bool:
        if self.model_name is not None and record.model_name != self.model_name:
            return False
        if self.pipeline is not None and record.pipeline != self.pipeline:
            return False
        if self.status is not None and record.status != self.status:
            return False
        return True
