# tests/unit/core/test_core_models.py - v1
"""Tests for core/models.py and core/errors.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from visiontester.core.errors import ErrorKind, PipelineError
from visiontester.core.models import InputDocument, RunParameters
from visiontester.storage import run_manager


class TestInputDocument:
    def test_prefix_stripped(self, sample_document):
        assert not sample_document.content.startswith("data:")

    def test_metadata_drops_content(self, sample_document):
        meta = sample_document.metadata("file_1")
        assert meta.content == ""
        assert meta.file_ref == "file_1"
        assert sample_document.content

    def test_rejects_unknown_kind(self):
        with pytest.raises(ValidationError):
            InputDocument(file_name="a.txt", file_kind="text", mime_type="text/plain", size=1)


class TestRunParameters:
    def test_frozen(self, direct_parameters):
        with pytest.raises(ValidationError):
            direct_parameters.temperature = 1.0

    def test_temperature_bounds(self):
        with pytest.raises(ValidationError):
            RunParameters(temperature=3.0)


class TestRunRecord:
    def test_is_terminal(self, sample_draft):
        record = run_manager.new_record(sample_draft)
        assert record.is_terminal is False
        assert record.model_copy(update={"status": "cancelled"}).is_terminal is True


class TestPipelineError:
    def test_str_and_dict(self, sample_draft):
        run = run_manager.new_record(sample_draft)
        error = PipelineError(
            ErrorKind.NETWORK_TIMEOUT, "Request timed out.", details="ReadTimeout",
        ).with_run(run)

        assert str(error) == "[NETWORK_TIMEOUT] Request timed out."
        assert error.to_dict() == {
            "code": "NETWORK_TIMEOUT",
            "message": "Request timed out.",
            "details": "ReadTimeout",
            "run_id": run.id,
        }
