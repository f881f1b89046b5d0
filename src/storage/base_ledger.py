# src/storage/base_ledger.py - v1
"""Abstract run ledger interface.

The orchestrator calls create / complete / fail / cancel; the CLI uses the
history queries. Backends implement record and file persistence; the
lifecycle transitions are shared here so every backend enforces the same
finalize-once rule.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from visiontester.core.models import Output, PipelineKind, RunDraft, RunRecord, RunStatus
from visiontester.storage import run_manager
from visiontester.storage.errors import RunAlreadyFinalizedError, RunNotFoundError
from visiontester.storage.models import StoredFile

logger = logging.getLogger(__name__)

__all__ = [
    "BaseRunLedger",
    "RunAlreadyFinalizedError",
    "RunNotFoundError",
]


class BaseRunLedger(ABC):
    """Unified interface for run ledger backends."""

    # --- Backend primitives ---

    @abstractmethod
    async def _insert(self, record: RunRecord) -> None:
        """Persist a new record."""

    @abstractmethod
    async def _update(self, record: RunRecord) -> None:
        """Overwrite an existing record."""

    @abstractmethod
    async def _put_file(self, stored: StoredFile) -> None:
        """Persist offloaded document content."""

    # --- Lifecycle ---

    async def create(self, draft: RunDraft, content: str | None = None) -> RunRecord:
        """Register a pending run.

        Args:
            draft: Run description; its input content is not retained.
            content: Document content to offload, if documents are retained.

        Returns:
            The pending RunRecord (input metadata only).
        """
        file_ref = None
        if content:
            file_ref = run_manager.generate_file_ref()
            await self._put_file(StoredFile(
                file_ref=file_ref,
                file_name=draft.input.file_name,
                mime_type=draft.input.mime_type,
                size=draft.input.size,
                content=content,
                created_at=run_manager.utc_now(),
            ))
        record = run_manager.new_record(draft, file_ref=file_ref)
        await self._insert(record)
        logger.debug("Created run %s (%s)", record.id, record.pipeline)
        return record

    async def complete(self, run_id: str, output: Output, duration_ms: int) -> RunRecord:
        return await self._finalize(run_id, "success", output, duration_ms)

    async def fail(
        self,
        run_id: str,
        message: str,
        *,
        duration_ms: int = 0,
        output: Output | None = None,
    ) -> RunRecord:
        return await self._finalize(
            run_id, "error", run_manager.failed_output(message, output), duration_ms,
        )

    async def cancel(
        self,
        run_id: str,
        *,
        duration_ms: int = 0,
        output: Output | None = None,
    ) -> RunRecord:
        return await self._finalize(
            run_id, "cancelled", run_manager.cancelled_output(output), duration_ms,
        )

    async def _finalize(
        self, run_id: str, status: RunStatus, output: Output, duration_ms: int,
    ) -> RunRecord:
        record = await self.get(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        finalized = run_manager.finalize_record(record, status, output, duration_ms)
        await self._update(finalized)
        logger.debug("Run %s finalized as %s in %dms", run_id, status, finalized.duration_ms)
        return finalized

    # --- History ---

    @abstractmethod
    async def get(self, run_id: str) -> RunRecord | None:
        """Retrieve a run by id."""

    @abstractmethod
    async def list_runs(
        self,
        model_name: str | None = None,
        pipeline: PipelineKind | None = None,
        status: RunStatus | None = None,
        limit: int | None = None,
    ) -> list[RunRecord]:
        """Runs matching the filters, newest first."""

    @abstractmethod
    async def delete(self, run_id: str) -> bool:
        """Remove a run and its offloaded content. False if unknown."""

    @abstractmethod
    async def cleanup(self, keep_count: int = 500) -> int:
        """Delete the oldest runs beyond ``keep_count``. Returns the number removed."""

    @abstractmethod
    async def get_file(self, file_ref: str) -> StoredFile | None:
        """Offloaded document content, if still present."""

    @abstractmethod
    async def delete_file(self, file_ref: str) -> None:
        """Remove offloaded content. No-op if absent."""

    def close(self) -> None:
        """Release backend resources."""
