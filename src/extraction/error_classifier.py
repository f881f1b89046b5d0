# src/extraction/error_classifier.py - v1
"""Map raw exceptions onto the closed ErrorKind taxonomy.

Rules are applied in a fixed priority: cancellation, network, timeout,
missing model, non-success response, JSON/parse, then UNKNOWN_ERROR.
classify_error never raises.
"""

from __future__ import annotations

import asyncio
import json
import traceback
from typing import Literal

from visiontester.core.errors import ErrorKind, PipelineError
from visiontester.llm.base_transport import (
    InferenceResponseError,
    ServerUnreachableError,
    TransportCancelledError,
)

PipelineStep = Literal["ocr", "parse"]

MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.REQUEST_CANCELLED: "Request was cancelled.",
    ErrorKind.SERVER_UNREACHABLE: (
        "Cannot connect to Ollama server. Make sure Ollama is running."
    ),
    ErrorKind.NETWORK_TIMEOUT: (
        "Request timed out. The model may be loading or the request was too large."
    ),
    ErrorKind.MODEL_NOT_AVAILABLE: (
        "The selected model is not available. Please check if the model is installed."
    ),
    ErrorKind.INVALID_RESPONSE: "The inference server returned an invalid response.",
    ErrorKind.JSON_PARSE_ERROR: "Failed to parse model response as JSON.",
}

# Kinds that say nothing specific to the operator; inside a two-step run they
# are reported against the step that failed.
_STEP_REMAPPED = frozenset({ErrorKind.UNKNOWN_ERROR, ErrorKind.INVALID_RESPONSE})


def _is_cancellation(error: BaseException, name: str, msg: str) -> bool:
    return (
        isinstance(error, (asyncio.CancelledError, TransportCancelledError))
        or name == "aborterror"
        or "cancel" in msg
    )


def _is_network(error: BaseException, name: str, msg: str) -> bool:
    if isinstance(error, (ServerUnreachableError, ConnectionError)):
        return True
    if "connecterror" in name:
        return True
    return any(k in msg for k in ("connect", "network", "econnrefused", "fetch"))


def _is_timeout(error: BaseException, name: str, msg: str) -> bool:
    return (
        isinstance(error, TimeoutError)
        or "timeout" in name
        or "timeout" in msg
        or "timed out" in msg
        or "aborted" in msg
    )


def _is_model_missing(error: BaseException, msg: str) -> bool:
    if "model" in msg and ("not found" in msg or "not available" in msg):
        return True
    return (
        isinstance(error, InferenceResponseError)
        and error.status_code == 404
        and "model" in msg
    )


def _is_parse(error: BaseException, name: str, msg: str) -> bool:
    return (
        isinstance(error, json.JSONDecodeError)
        or "json" in name
        or "json" in msg
        or "parse" in msg
    )


def classify_error(error: BaseException) -> PipelineError:
    """Classify any exception into exactly one PipelineError."""
    if isinstance(error, PipelineError):
        return error

    name = type(error).__name__.lower()
    text = str(error)
    msg = text.lower()

    if _is_cancellation(error, name, msg):
        kind = ErrorKind.REQUEST_CANCELLED
    elif _is_network(error, name, msg):
        kind = ErrorKind.SERVER_UNREACHABLE
    elif _is_timeout(error, name, msg):
        kind = ErrorKind.NETWORK_TIMEOUT
    elif _is_model_missing(error, msg):
        kind = ErrorKind.MODEL_NOT_AVAILABLE
    elif isinstance(error, InferenceResponseError):
        kind = ErrorKind.INVALID_RESPONSE
    elif _is_parse(error, name, msg):
        kind = ErrorKind.JSON_PARSE_ERROR
    else:
        tb = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        return PipelineError(
            ErrorKind.UNKNOWN_ERROR,
            text or "An unexpected error occurred.",
            details=tb or repr(error),
        )

    return PipelineError(kind, MESSAGES[kind], details=text or type(error).__name__)


def classify_step_error(error: BaseException, step: PipelineStep) -> PipelineError:
    """Classify an error raised during one turn of the two-step pipeline."""
    classified = classify_error(error)
    if classified.kind not in _STEP_REMAPPED:
        return classified
    if step == "ocr":
        kind, prefix = ErrorKind.OCR_EXTRACTION_FAILED, "OCR extraction failed"
    else:
        kind, prefix = ErrorKind.PARSE_STEP_FAILED, "Parse step failed"
    return PipelineError(
        kind,
        f"{prefix}: {classified.message}",
        details=classified.details,
        run=classified.run,
    )
