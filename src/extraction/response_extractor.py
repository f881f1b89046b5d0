# src/extraction/response_extractor.py - v2
"""Recover a JSON value from free-form model output.

Models often wrap structured output in prose or markdown fences. Each
strategy below is a pure function returning ``NO_MATCH`` when it does not
apply; ``extract_json`` tries them in order and the first hit wins.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable

from visiontester.core.errors import ErrorKind, PipelineError

PREVIEW_LENGTH = 100

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```", re.IGNORECASE)


class _NoMatch:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<no match>"


NO_MATCH: Any = _NoMatch()


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return NO_MATCH


def parse_whole(text: str) -> Any:
    """The entire text is JSON."""
    return _loads(text)


def parse_fenced_block(text: str) -> Any:
    """First fenced code block, optionally tagged ``json``."""
    match = _FENCED_BLOCK_RE.search(text)
    if match is None:
        return NO_MATCH
    return _loads(match.group(1).strip())


def parse_brace_span(text: str) -> Any:
    """Span from the first ``{`` to the last ``}``."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return NO_MATCH
    return _loads(text[start:end + 1])


Strategy = Callable[[str], Any]

STRATEGIES: tuple[Strategy, ...] = (parse_whole, parse_fenced_block, parse_brace_span)


def extract_json(text: str, strategies: tuple[Strategy, ...] = STRATEGIES) -> Any:
    """Return the first value any strategy recovers.

    Raises:
        PipelineError: JSON_PARSE_ERROR when no strategy succeeds.
    """
    for strategy in strategies:
        value = strategy(text)
        if value is not NO_MATCH:
            return value
    preview = text[:PREVIEW_LENGTH]
    raise PipelineError(
        ErrorKind.JSON_PARSE_ERROR,
        f"Failed to parse JSON from response: {preview}...",
    )
