# src/utils/base64.py - v1
"""Base64 helpers for document content.

The inference server expects raw base64 only, so any ``data:<mime>;base64,``
prefix produced by browsers or storage layers must be stripped before use.
"""

from __future__ import annotations

import base64
import binascii
import re

_DATA_URI_RE = re.compile(r"^data:[^;,]+;base64,(.*)$", re.DOTALL)
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def strip_data_uri_prefix(content: str) -> str:
    """Return raw base64 content without a data URI prefix.

    Content that is already raw is returned unchanged.
    """
    match = _DATA_URI_RE.match(content)
    if match:
        return match.group(1)
    return content


def add_data_uri_prefix(content: str, mime_type: str) -> str:
    """Prefix raw base64 content with a data URI header."""
    return f"data:{mime_type};base64,{strip_data_uri_prefix(content)}"


def is_valid_base64(content: str) -> bool:
    """Check whether a string is well-formed, padded base64."""
    if not content or len(content) % 4 != 0:
        return False
    return bool(_BASE64_RE.match(content))


def encode_bytes(data: bytes) -> str:
    """Encode raw bytes as base64 text (no prefix)."""
    return base64.b64encode(data).decode("ascii")


def decode_content(content: str) -> bytes:
    """Decode base64 content, tolerating a data URI prefix.

    Raises:
        ValueError: If the content is not valid base64.
    """
    try:
        return base64.b64decode(strip_data_uri_prefix(content), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 content: {e}") from e
