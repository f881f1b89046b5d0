# src/storage/layout.py - v2
"""On-disk layout of the JSON run ledger.

    {ledger_root}/
        runs/{run_id}.json        one RunRecord per file
        files/{file_ref}.json     offloaded document content
"""

from __future__ import annotations

from pathlib import Path

RUNS_DIR = "runs"
FILES_DIR = "files"
RECORD_SUFFIX = ".json"

SQLITE_FILENAME = "visiontester.db"


def runs_dir(root: Path) -> Path:
    return root / RUNS_DIR


def files_dir(root: Path) -> Path:
    return root / FILES_DIR


def run_path(root: Path, run_id: str) -> Path:
    """Path of a run record file."""
    return runs_dir(root) / f"{run_id}{RECORD_SUFFIX}"


def file_path(root: Path, file_ref: str) -> Path:
    """Path of an offloaded document file."""
    return files_dir(root) / f"{file_ref}{RECORD_SUFFIX}"


def sqlite_path(root: Path) -> Path:
    return root / SQLITE_FILENAME


def ensure_directories(root: Path) -> None:
    """Create runs/ and files/ under the ledger root."""
    runs_dir(root).mkdir(parents=True, exist_ok=True)
    files_dir(root).mkdir(parents=True, exist_ok=True)
