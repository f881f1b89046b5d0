# tests/conftest.py - v3
"""Shared test fixtures for unit tests.

Provides sample documents and parameters, settings isolated from any .env
file, ledgers rooted in temp directories and a scripted fake transport.
No network access: every model turn goes through FakeTransport.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from visiontester.config.settings import Settings
from visiontester.core.models import InputDocument, RunDraft, RunParameters
from visiontester.storage.json_ledger import JsonRunLedger
from visiontester.storage.sqlite_ledger import SqliteRunLedger

from tests.fakes import INVOICE_SCHEMA, PNG_B64, FakeTransport


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_document() -> InputDocument:
    """Small PNG carrying a data URI prefix, as a UI layer would hand it over."""
    return InputDocument(
        file_name="invoice.png",
        file_kind="image",
        mime_type="image/png",
        size=68,
        content=f"data:image/png;base64,{PNG_B64}",
    )


@pytest.fixture
def direct_parameters() -> RunParameters:
    return RunParameters(
        temperature=0.0,
        max_tokens=4096,
        num_ctx=8192,
        system_prompt="Extract invoice data as JSON.",
        user_prompt="Extract all fields.",
    )


@pytest.fixture
def schema_parameters(direct_parameters: RunParameters) -> RunParameters:
    return direct_parameters.model_copy(update={"output_schema": INVOICE_SCHEMA})


@pytest.fixture
def sample_draft(sample_document: InputDocument, direct_parameters: RunParameters) -> RunDraft:
    return RunDraft(
        pipeline="direct-multimodal",
        model_name="qwen2.5vl:7b",
        parameters=direct_parameters,
        input=sample_document,
    )


# === FIXTURES: Settings and storage ===


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, ledger_root=tmp_path / "runs")  # type: ignore[call-arg]


@pytest.fixture
def json_ledger(tmp_path: Path) -> JsonRunLedger:
    return JsonRunLedger(tmp_path / "ledger")


@pytest.fixture
def sqlite_ledger(tmp_path: Path):
    ledger = SqliteRunLedger(tmp_path / "ledger.db")
    yield ledger
    ledger.close()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
