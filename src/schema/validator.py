# src/schema/validator.py - v1
"""JSON Schema validation with operator-friendly findings.

Wraps jsonschema's Draft 7 validator (all errors collected, formats checked)
and converts each error into a ValidationFinding:

    field        lineItems[0].quantity, or (root)
    message      "Must be >= 1"
    schema_path  #/properties/lineItems/items/properties/quantity/minimum
    keyword      minimum
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import SchemaError, ValidationError
from pydantic import BaseModel, Field

from visiontester.core.models import ValidationFinding

logger = logging.getLogger(__name__)

ROOT_FIELD = "(root)"
SCHEMA_FIELD = "(schema)"


class ValidationResult(BaseModel):
    valid: bool
    errors: list[ValidationFinding] = Field(default_factory=list)


def format_field_path(path: Iterable[Any]) -> str:
    """``["lineItems", 0, "quantity"]`` -> ``lineItems[0].quantity``."""
    out = ""
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        elif out:
            out += f".{part}"
        else:
            out = str(part)
    return out or ROOT_FIELD


def format_schema_path(path: Iterable[Any]) -> str:
    parts = "/".join(str(p) for p in path)
    return f"#/{parts}" if parts else "#"


def format_message(keyword: str, params: dict[str, Any]) -> str:
    """Human-readable message for a violated keyword."""
    if keyword == "type":
        expected = params.get("type")
        if isinstance(expected, list):
            expected = ",".join(expected)
        return f"Must be {expected}"
    if keyword == "required":
        return f'Required field "{params.get("missingProperty")}" is missing'
    if keyword == "additionalProperties":
        return (
            f'Additional property "{params.get("additionalProperty")}" '
            "not defined in schema"
        )
    if keyword == "enum":
        allowed = params.get("allowedValues") or []
        return "Must be one of: " + ", ".join(str(v) for v in allowed)
    if keyword == "minimum":
        return f"Must be >= {params.get('limit')}"
    if keyword == "maximum":
        return f"Must be <= {params.get('limit')}"
    if keyword == "minLength":
        return f"Must be at least {params.get('limit')} characters"
    if keyword == "maxLength":
        return f"Must be at most {params.get('limit')} characters"
    if keyword == "pattern":
        return f"Must match pattern: {params.get('pattern')}"
    if keyword == "format":
        return f'Must match format "{params.get("format")}"'
    if keyword == "minItems":
        return f"Array must have at least {params.get('limit')} items"
    if keyword == "maxItems":
        return f"Array must have at most {params.get('limit')} items"
    if keyword == "uniqueItems":
        return "Array items must be unique"
    if keyword == "const":
        return f"Must be exactly: {json.dumps(params.get('allowedValue'))}"
    return f"Validation failed: {keyword}"


def _missing_properties(error: ValidationError) -> list[str]:
    instance = error.instance if isinstance(error.instance, dict) else {}
    missing = [p for p in error.validator_value if p not in instance]
    named = [p for p in missing if repr(p) in error.message]
    return named[:1] or missing[:1]


def _additional_properties(error: ValidationError) -> list[str]:
    instance = error.instance if isinstance(error.instance, dict) else {}
    schema = error.schema if isinstance(error.schema, dict) else {}
    declared = schema.get("properties") or {}
    patterns = list((schema.get("patternProperties") or {}).keys())
    return [
        key for key in instance
        if key not in declared and not any(re.search(p, key) for p in patterns)
    ]


def _params_for(keyword: str, value: Any) -> dict[str, Any]:
    if keyword == "type":
        return {"type": value}
    if keyword == "enum":
        return {"allowedValues": value}
    if keyword == "const":
        return {"allowedValue": value}
    if keyword == "pattern":
        return {"pattern": value}
    if keyword == "format":
        return {"format": value}
    if keyword in (
        "minimum", "maximum", "minLength", "maxLength", "minItems", "maxItems",
    ):
        return {"limit": value}
    return {}


def _to_findings(error: ValidationError) -> list[ValidationFinding]:
    keyword = str(error.validator)
    field = format_field_path(error.absolute_path)
    schema_path = format_schema_path(error.absolute_schema_path)

    if keyword == "required":
        findings = []
        for prop in _missing_properties(error):
            params = {"missingProperty": prop}
            findings.append(ValidationFinding(
                field=prop if field == ROOT_FIELD else f"{field}.{prop}",
                message=format_message(keyword, params),
                schema_path=schema_path,
                keyword=keyword,
                params=params,
            ))
        return findings

    if keyword == "additionalProperties" and error.validator_value is False:
        findings = []
        for prop in _additional_properties(error):
            params = {"additionalProperty": prop}
            findings.append(ValidationFinding(
                field=field,
                message=format_message(keyword, params),
                schema_path=schema_path,
                keyword=keyword,
                params=params,
            ))
        if findings:
            return findings

    params = _params_for(keyword, error.validator_value)
    return [ValidationFinding(
        field=field,
        message=format_message(keyword, params),
        schema_path=schema_path,
        keyword=keyword,
        params=params,
    )]


def _schema_finding(message: str) -> ValidationFinding:
    return ValidationFinding(
        field=SCHEMA_FIELD, message=message, schema_path="", keyword="schema",
    )


class SchemaValidator:
    """Validates values against JSON schemas; never raises on bad input."""

    def __init__(self) -> None:
        self._format_checker = FormatChecker()

    def validate(self, value: Any, schema: dict[str, Any]) -> ValidationResult:
        try:
            Draft7Validator.check_schema(schema)
        except SchemaError as e:
            logger.warning("Invalid schema: %s", e.message)
            return ValidationResult(valid=False, errors=[_schema_finding(e.message)])

        validator = Draft7Validator(schema, format_checker=self._format_checker)
        try:
            raw_errors = list(validator.iter_errors(value))
        except Exception as e:  # unresolvable refs and similar compile-time failures
            logger.warning("Schema could not be applied: %s", e)
            return ValidationResult(
                valid=False, errors=[_schema_finding(str(e) or "Invalid schema")],
            )

        findings = [f for err in raw_errors for f in _to_findings(err)]
        return ValidationResult(valid=not raw_errors, errors=findings)


def format_findings(errors: Iterable[ValidationFinding]) -> list[str]:
    """``field: message`` lines for display."""
    return [f"{e.field}: {e.message}" for e in errors]


def group_by_field(errors: Iterable[ValidationFinding]) -> dict[str, str]:
    """Messages grouped per field, joined with ``; ``."""
    grouped: dict[str, str] = {}
    for e in errors:
        grouped[e.field] = f"{grouped[e.field]}; {e.message}" if e.field in grouped else e.message
    return grouped
