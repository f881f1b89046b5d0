# src/storage/errors.py - v1
"""Run ledger exceptions."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for run ledger failures."""


class RunNotFoundError(LedgerError):
    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class RunAlreadyFinalizedError(LedgerError):
    """Raised when finalizing a record that is no longer pending."""

    def __init__(self, run_id: str, status: str) -> None:
        self.run_id = run_id
        self.status = status
        super().__init__(f"Run {run_id} is already {status}")
