# src/schema/cleaner.py - v1
"""Prepare JSON schemas for the inference server's structured-output constraint.

The server ignores schemas carrying meta-fields and cannot follow ``$ref``.
clean_schema() returns a new, self-contained schema:

- local ``$ref`` pointers (``#/$defs/...``, ``#/definitions/...``) inlined
- ``$schema``, ``$id``, ``$ref``, ``definitions``, ``$defs`` removed
- ``anyOf: [T, {"type": "null"}]`` rewritten to ``type: [T, "null"]`` for simple T
- ``additionalProperties: false`` added to objects that do not set it
- empty ``required`` arrays dropped
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

META_FIELDS: frozenset[str] = frozenset(
    {"$schema", "$id", "$ref", "definitions", "$defs"}
)

# Keywords whose value maps property names to sub-schemas.
_SCHEMA_MAPS: frozenset[str] = frozenset({"properties", "patternProperties"})


def _resolve_pointer(root: dict[str, Any], ref: str) -> Any:
    if not ref.startswith("#/"):
        return None
    node: Any = root
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _inline_refs(node: Any, root: dict[str, Any], stack: tuple[str, ...] = ()) -> Any:
    if isinstance(node, list):
        return [_inline_refs(item, root, stack) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str):
        if ref in stack:
            logger.warning("Recursive $ref %s replaced with an open schema", ref)
            target: Any = {}
        else:
            resolved = _resolve_pointer(root, ref)
            if resolved is None:
                logger.warning("Unresolvable $ref %s dropped", ref)
                target = {}
            else:
                target = _inline_refs(resolved, root, (*stack, ref))
        siblings = {k: v for k, v in node.items() if k != "$ref"}
        merged = dict(target) if isinstance(target, dict) else {}
        merged.update(_inline_refs(siblings, root, stack))
        return merged

    return {k: _inline_refs(v, root, stack) for k, v in node.items()}


def _simplify_nullable(schema: dict[str, Any]) -> dict[str, Any]:
    any_of = schema.get("anyOf")
    if not isinstance(any_of, list) or len(any_of) != 2:
        return schema

    null_option: dict[str, Any] | None = None
    value_option: dict[str, Any] | None = None
    for option in any_of:
        if not isinstance(option, dict):
            return schema
        if option.get("type") == "null" and len(option) == 1:
            null_option = option
            continue
        option_type = option.get("type")
        if not isinstance(option_type, str):
            return schema
        if (option_type == "object" and "properties" in option) or (
            option_type == "array" and "items" in option
        ):
            return schema
        value_option = option

    if null_option is None or value_option is None:
        return schema

    rest = {k: v for k, v in schema.items() if k != "anyOf"}
    others = {k: v for k, v in value_option.items() if k != "type"}
    return {**rest, **others, "type": [value_option["type"], "null"]}


def _deep_clean(node: Any) -> Any:
    if isinstance(node, list):
        return [_deep_clean(item) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned = {k: v for k, v in node.items() if k not in META_FIELDS}
    if "anyOf" in cleaned:
        cleaned = _simplify_nullable(cleaned)
    if cleaned.get("type") == "object" and "additionalProperties" not in cleaned:
        cleaned["additionalProperties"] = False
    if cleaned.get("required") == []:
        del cleaned["required"]

    for key, value in cleaned.items():
        if key in _SCHEMA_MAPS and isinstance(value, dict):
            cleaned[key] = {name: _deep_clean(sub) for name, sub in value.items()}
        elif isinstance(value, (dict, list)):
            cleaned[key] = _deep_clean(value)
    return cleaned


def clean_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Return a cleaned copy of ``schema``; the input is left untouched."""
    source = copy.deepcopy(schema)
    cleaned = _deep_clean(_inline_refs(source, source))

    if logger.isEnabledFor(logging.DEBUG):
        issues = verify_schema_structure(cleaned)
        for issue in issues:
            logger.debug("Schema verification issue: %s", issue)
        if not issues:
            logger.debug("Schema structure verified")
    return cleaned


def schema_from_model(model_cls: type[BaseModel]) -> dict[str, Any]:
    """JSON schema of a pydantic model, cleaned for the server."""
    cleaned = clean_schema(model_cls.model_json_schema())
    logger.debug("Generated schema for %s: %s", model_cls.__name__, json.dumps(cleaned))
    return cleaned


def verify_schema_structure(schema: Any, path: str = "root") -> list[str]:
    """List structural issues: objects without ``additionalProperties: false``."""
    issues: list[str] = []
    if not isinstance(schema, dict):
        return issues

    if schema.get("type") == "object":
        if "additionalProperties" not in schema:
            issues.append(f"{path}: Missing additionalProperties: false")
        elif schema["additionalProperties"] is not False:
            issues.append(
                f"{path}: additionalProperties should be false, "
                f"got {schema['additionalProperties']}"
            )
        properties = schema.get("properties")
        if isinstance(properties, dict):
            for key, value in properties.items():
                issues.extend(verify_schema_structure(value, f"{path}.{key}"))

    if schema.get("type") == "array" and "items" in schema:
        issues.extend(verify_schema_structure(schema["items"], f"{path}[]"))

    return issues
