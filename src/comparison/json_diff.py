# src/comparison/json_diff.py - v1
"""Field-level diff between the parsed outputs of two runs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from visiontester.core.models import RunRecord

ROOT_PATH = "(root)"


class DiffResult(BaseModel):
    has_differences: bool = False
    added_fields: list[str] = Field(default_factory=list)
    removed_fields: list[str] = Field(default_factory=list)
    modified_fields: list[str] = Field(default_factory=list)


def _join(prefix: str, key: str | int) -> str:
    if isinstance(key, int):
        return f"{prefix}[{key}]"
    return f"{prefix}.{key}" if prefix else key


def _walk(left: Any, right: Any, path: str, result: DiffResult) -> None:
    if isinstance(left, dict) and isinstance(right, dict):
        for key in left:
            if key not in right:
                result.removed_fields.append(_join(path, key))
        for key, value in right.items():
            if key not in left:
                result.added_fields.append(_join(path, key))
            else:
                _walk(left[key], value, _join(path, key), result)
        return

    if isinstance(left, list) and isinstance(right, list):
        for i in range(max(len(left), len(right))):
            if i >= len(left):
                result.added_fields.append(_join(path, i))
            elif i >= len(right):
                result.removed_fields.append(_join(path, i))
            else:
                _walk(left[i], right[i], _join(path, i), result)
        return

    # bool is an int subclass; True must not equal 1 here
    if isinstance(left, bool) != isinstance(right, bool) or left != right:
        result.modified_fields.append(path or ROOT_PATH)


def diff_values(left: Any, right: Any) -> DiffResult:
    """Compare two JSON values. Paths look like ``lineItems[0].quantity``."""
    result = DiffResult()
    _walk(left, right, "", result)
    result.has_differences = bool(
        result.added_fields or result.removed_fields or result.modified_fields
    )
    return result


def diff_outputs(left: RunRecord, right: RunRecord) -> DiffResult:
    """Compare ``output.parsed`` of two runs; a missing value counts as ``{}``."""
    return diff_values(left.output.parsed or {}, right.output.parsed or {})
