# src/utils/documents.py - v1
"""File intake: type/size checks and conversion into InputDocument."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from visiontester.core.models import InputDocument
from visiontester.utils.base64 import encode_bytes
from visiontester.utils.formatters import format_file_size

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
SUPPORTED_IMAGE_TYPES: tuple[str, ...] = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
)
SUPPORTED_MIME_TYPES: tuple[str, ...] = (*SUPPORTED_IMAGE_TYPES, PDF_MIME_TYPE)

DEFAULT_MAX_FILE_SIZE = 20 * 1024 * 1024
DEFAULT_WARN_FILE_SIZE = 1 * 1024 * 1024

_EXTRA_TYPES = {".webp": "image/webp", ".bmp": "image/bmp"}


@dataclass(frozen=True)
class FileCheck:
    """Outcome of a file intake check."""

    valid: bool
    error: str | None = None
    warning: str | None = None


def detect_mime_type(path: Path) -> str | None:
    """Guess a MIME type from the file extension."""
    ext = path.suffix.lower()
    if ext in _EXTRA_TYPES:
        return _EXTRA_TYPES[ext]
    mime, _ = mimetypes.guess_type(path.name)
    return mime


def validate_file_type(mime_type: str | None) -> FileCheck:
    if mime_type not in SUPPORTED_MIME_TYPES:
        return FileCheck(
            valid=False,
            error=(
                f"Unsupported file type: {mime_type}. "
                "Supported types: PDF, JPEG, PNG, GIF, WebP, BMP"
            ),
        )
    return FileCheck(valid=True)


def validate_file_size(
    size: int,
    max_size: int = DEFAULT_MAX_FILE_SIZE,
    warn_size: int = DEFAULT_WARN_FILE_SIZE,
) -> FileCheck:
    if size > max_size:
        return FileCheck(
            valid=False,
            error=(
                f"File size ({format_file_size(size)}) exceeds maximum allowed "
                f"size ({format_file_size(max_size)})"
            ),
        )
    if size > warn_size:
        return FileCheck(
            valid=True,
            warning=f"Large file ({format_file_size(size)}) may take longer to process",
        )
    return FileCheck(valid=True)


def load_document(
    path: Path,
    max_size: int = DEFAULT_MAX_FILE_SIZE,
    warn_size: int = DEFAULT_WARN_FILE_SIZE,
) -> InputDocument:
    """Read a file from disk into an InputDocument.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the file type or size is not accepted.
    """
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    mime_type = detect_mime_type(path)
    type_check = validate_file_type(mime_type)
    if not type_check.valid:
        raise ValueError(type_check.error)

    size = path.stat().st_size
    size_check = validate_file_size(size, max_size=max_size, warn_size=warn_size)
    if not size_check.valid:
        raise ValueError(size_check.error)
    if size_check.warning:
        logger.warning(size_check.warning)

    return InputDocument(
        file_name=path.name,
        file_kind="pdf" if mime_type == PDF_MIME_TYPE else "image",
        mime_type=mime_type,  # type: ignore[arg-type]
        size=size,
        content=encode_bytes(path.read_bytes()),
    )
