# src/storage/sqlite_ledger.py - v1
"""SQLite-based run ledger (LEDGER_BACKEND=sqlite).

Uses stdlib sqlite3 with WAL journaling. Records are stored as JSON in the
``data`` column; the filterable fields are duplicated into indexed columns.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from visiontester.core.models import PipelineKind, RunRecord, RunStatus
from visiontester.storage.base_ledger import BaseRunLedger
from visiontester.storage.errors import RunNotFoundError
from visiontester.storage.models import StoredFile

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    pipeline TEXT NOT NULL,
    model_name TEXT NOT NULL,
    status TEXT NOT NULL,
    file_ref TEXT,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_runs_model_pipeline ON runs(model_name, pipeline);
CREATE INDEX IF NOT EXISTS idx_runs_created_at ON runs(created_at);
CREATE TABLE IF NOT EXISTS files (
    file_ref TEXT PRIMARY KEY,
    data TEXT NOT NULL
);
"""


class SqliteRunLedger(BaseRunLedger):
    """SQLite-backed run ledger for larger histories."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @staticmethod
    def _row(record: RunRecord) -> tuple[str, str, str, str, str, str | None, str]:
        return (
            record.id,
            record.created_at.isoformat(),
            record.pipeline,
            record.model_name,
            record.status,
            record.input.file_ref,
            record.model_dump_json(),
        )

    def _load(self, data: str) -> RunRecord | None:
        try:
            return RunRecord.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Failed to deserialize run record: %s", e)
            return None

    async def _insert(self, record: RunRecord) -> None:
        self._conn.execute(
            """INSERT INTO runs (id, created_at, pipeline, model_name, status, file_ref, data)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            self._row(record),
        )
        self._conn.commit()

    async def _update(self, record: RunRecord) -> None:
        cursor = self._conn.execute(
            "UPDATE runs SET status = ?, data = ? WHERE id = ?",
            (record.status, record.model_dump_json(), record.id),
        )
        self._conn.commit()
        if cursor.rowcount == 0:
            raise RunNotFoundError(record.id)

    async def get(self, run_id: str) -> RunRecord | None:
        row = self._conn.execute(
            "SELECT data FROM runs WHERE id = ?", (run_id,)
        ).fetchone()
        if row is None:
            return None
        return self._load(row[0])

    async def list_runs(
        self,
        model_name: str | None = None,
        pipeline: PipelineKind | None = None,
        status: RunStatus | None = None,
        limit: int | None = None,
    ) -> list[RunRecord]:
        clauses: list[str] = []
        params: list[object] = []
        for column, value in (
            ("model_name", model_name), ("pipeline", pipeline), ("status", status),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)

        sql = "SELECT data FROM runs"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        records = []
        for (data,) in self._conn.execute(sql, params).fetchall():
            record = self._load(data)
            if record is not None:
                records.append(record)
        return records

    async def delete(self, run_id: str) -> bool:
        row = self._conn.execute(
            "SELECT file_ref FROM runs WHERE id = ?", (run_id,)
        ).fetchone()
        if row is None:
            return False
        self._conn.execute("DELETE FROM runs WHERE id = ?", (run_id,))
        if row[0]:
            self._conn.execute("DELETE FROM files WHERE file_ref = ?", (row[0],))
        self._conn.commit()
        return True

    async def cleanup(self, keep_count: int = 500) -> int:
        stale = self._conn.execute(
            "SELECT id FROM runs ORDER BY created_at DESC, id DESC LIMIT -1 OFFSET ?",
            (max(keep_count, 0),),
        ).fetchall()
        for (run_id,) in stale:
            await self.delete(run_id)
        if stale:
            logger.info("Removed %d old runs, kept %d", len(stale), keep_count)
        return len(stale)

    async def _put_file(self, stored: StoredFile) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO files (file_ref, data) VALUES (?, ?)",
            (stored.file_ref, stored.model_dump_json()),
        )
        self._conn.commit()

    async def get_file(self, file_ref: str) -> StoredFile | None:
        row = self._conn.execute(
            "SELECT data FROM files WHERE file_ref = ?", (file_ref,)
        ).fetchone()
        if row is None:
            return None
        return StoredFile.model_validate_json(row[0])

    async def delete_file(self, file_ref: str) -> None:
        self._conn.execute("DELETE FROM files WHERE file_ref = ?", (file_ref,))
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
