# tests/unit/extraction/test_error_classifier.py - v1
"""Tests for extraction/error_classifier.py."""

from __future__ import annotations

import asyncio
import json

import pytest

from visiontester.core.errors import ErrorKind, PipelineError
from visiontester.extraction.error_classifier import (
    MESSAGES,
    classify_error,
    classify_step_error,
)
from visiontester.llm.base_transport import (
    InferenceResponseError,
    ServerUnreachableError,
    TransportCancelledError,
)


class AbortError(Exception):
    pass


class ReadTimeout(Exception):
    pass


class TestClassifyError:
    @pytest.mark.parametrize("error", [
        TransportCancelledError("Request was cancelled"),
        asyncio.CancelledError(),
        AbortError("The user aborted a request."),
        RuntimeError("operation cancelled by user"),
    ])
    def test_cancellation(self, error):
        result = classify_error(error)
        assert result.kind == ErrorKind.REQUEST_CANCELLED
        assert result.message == MESSAGES[ErrorKind.REQUEST_CANCELLED]

    @pytest.mark.parametrize("error", [
        ServerUnreachableError("down"),
        ConnectionRefusedError("refused"),
        RuntimeError("Failed to fetch"),
        OSError("ECONNREFUSED 127.0.0.1:11434"),
    ])
    def test_network(self, error):
        assert classify_error(error).kind == ErrorKind.SERVER_UNREACHABLE

    @pytest.mark.parametrize("error", [
        TimeoutError(),
        ReadTimeout("read"),
        RuntimeError("request timed out"),
    ])
    def test_timeout(self, error):
        assert classify_error(error).kind == ErrorKind.NETWORK_TIMEOUT

    def test_cancellation_beats_network(self):
        error = ServerUnreachableError("connection cancelled")
        assert classify_error(error).kind == ErrorKind.REQUEST_CANCELLED

    def test_model_not_found(self):
        error = InferenceResponseError("model 'llava:99b' not found", status_code=404)
        result = classify_error(error)
        assert result.kind == ErrorKind.MODEL_NOT_AVAILABLE
        assert result.details == "model 'llava:99b' not found"

    def test_other_response_error(self):
        error = InferenceResponseError("internal server error", status_code=500)
        assert classify_error(error).kind == ErrorKind.INVALID_RESPONSE

    def test_json_decode(self):
        error = json.JSONDecodeError("Expecting value", "x", 0)
        assert classify_error(error).kind == ErrorKind.JSON_PARSE_ERROR

    def test_unknown_keeps_traceback(self):
        try:
            raise ValueError("something odd")
        except ValueError as e:
            result = classify_error(e)

        assert result.kind == ErrorKind.UNKNOWN_ERROR
        assert result.message == "something odd"
        assert "Traceback" in result.details

    def test_unknown_without_message(self):
        assert classify_error(KeyError()).message == "An unexpected error occurred."

    def test_pipeline_error_passes_through(self):
        original = PipelineError(ErrorKind.OCR_EMPTY_RESULT, "empty")
        assert classify_error(original) is original


class TestClassifyStepError:
    def test_unknown_in_ocr(self):
        result = classify_step_error(RuntimeError("bad image"), "ocr")
        assert result.kind == ErrorKind.OCR_EXTRACTION_FAILED
        assert result.message == "OCR extraction failed: bad image"

    def test_invalid_response_in_parse(self):
        error = InferenceResponseError("internal server error", status_code=500)
        result = classify_step_error(error, "parse")
        assert result.kind == ErrorKind.PARSE_STEP_FAILED
        assert result.message.startswith("Parse step failed: ")

    def test_specific_kinds_kept(self):
        result = classify_step_error(ServerUnreachableError("down"), "ocr")
        assert result.kind == ErrorKind.SERVER_UNREACHABLE
