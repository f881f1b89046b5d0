# src/storage/ledger_factory.py - v1
"""Factory for run ledger instantiation."""

from __future__ import annotations

from visiontester.config.settings import Settings
from visiontester.storage import layout
from visiontester.storage.base_ledger import BaseRunLedger


def create_ledger(settings: Settings) -> BaseRunLedger:
    """Instantiate the configured ledger backend.

    Args:
        settings: Application settings (LEDGER_BACKEND, LEDGER_ROOT).

    Returns:
        Configured BaseRunLedger implementation.

    Raises:
        ValueError: If the backend is not supported.
    """
    root = settings.ledger_path

    if settings.ledger_backend == "json":
        from visiontester.storage.json_ledger import JsonRunLedger
        return JsonRunLedger(root)

    if settings.ledger_backend == "sqlite":
        from visiontester.storage.sqlite_ledger import SqliteRunLedger
        return SqliteRunLedger(layout.sqlite_path(root))

    raise ValueError(f"Unsupported ledger backend: {settings.ledger_backend!r}")
