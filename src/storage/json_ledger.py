# src/storage/json_ledger.py - v1
"""JSON file-based run ledger (default LEDGER_BACKEND=json).

Stores each run as an individual JSON file under LEDGER_ROOT/runs and
offloaded document content under LEDGER_ROOT/files.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from visiontester.core.models import PipelineKind, RunRecord, RunStatus
from visiontester.storage import layout
from visiontester.storage.base_ledger import BaseRunLedger
from visiontester.storage.errors import RunNotFoundError
from visiontester.storage.models import RunQuery, StoredFile

logger = logging.getLogger(__name__)


def _newest_first(records: list[RunRecord]) -> list[RunRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


class JsonRunLedger(BaseRunLedger):
    """File-based run ledger using JSON files."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()
        layout.ensure_directories(self._root)

    @property
    def root(self) -> Path:
        return self._root

    async def _insert(self, record: RunRecord) -> None:
        self._write(record)

    async def _update(self, record: RunRecord) -> None:
        if not layout.run_path(self._root, record.id).exists():
            raise RunNotFoundError(record.id)
        self._write(record)

    def _write(self, record: RunRecord) -> None:
        path = layout.run_path(self._root, record.id)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)

    def _read(self, path: Path) -> RunRecord | None:
        try:
            return RunRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to read run record %s: %s", path.name, e)
            return None

    def _all(self) -> list[RunRecord]:
        records = []
        for path in layout.runs_dir(self._root).glob(f"*{layout.RECORD_SUFFIX}"):
            record = self._read(path)
            if record is not None:
                records.append(record)
        return records

    async def get(self, run_id: str) -> RunRecord | None:
        path = layout.run_path(self._root, run_id)
        if not path.exists():
            return None
        return self._read(path)

    async def list_runs(
        self,
        model_name: str | None = None,
        pipeline: PipelineKind | None = None,
        status: RunStatus | None = None,
        limit: int | None = None,
    ) -> list[RunRecord]:
        query = RunQuery(model_name=model_name, pipeline=pipeline, status=status, limit=limit)
        matched = _newest_first([r for r in self._all() if query.matches(r)])
        return matched[:limit] if limit is not None else matched

    async def delete(self, run_id: str) -> bool:
        path = layout.run_path(self._root, run_id)
        if not path.exists():
            return False
        record = self._read(path)
        path.unlink()
        if record is not None and record.input.file_ref:
            await self.delete_file(record.input.file_ref)
        return True

    async def cleanup(self, keep_count: int = 500) -> int:
        stale = _newest_first(self._all())[max(keep_count, 0):]
        for record in stale:
            await self.delete(record.id)
        if stale:
            logger.info("Removed %d old runs, kept %d", len(stale), keep_count)
        return len(stale)

    async def _put_file(self, stored: StoredFile) -> None:
        layout.file_path(self._root, stored.file_ref).write_text(
            stored.model_dump_json(), encoding="utf-8"
        )

    async def get_file(self, file_ref: str) -> StoredFile | None:
        path = layout.file_path(self._root, file_ref)
        if not path.exists():
            return None
        try:
            return StoredFile.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to read stored file %s: %s", file_ref, e)
            return None

    async def delete_file(self, file_ref: str) -> None:
        path = layout.file_path(self._root, file_ref)
        if path.exists():
            path.unlink()
