# tests/unit/schema/test_schema_validator.py - v1
"""Tests for schema/validator.py."""

from __future__ import annotations

import pytest

from visiontester.core.models import ValidationFinding
from visiontester.schema.validator import (
    SchemaValidator,
    format_field_path,
    format_findings,
    format_message,
    format_schema_path,
    group_by_field,
)

INVOICE = {
    "type": "object",
    "properties": {
        "invoiceNumber": {"type": "string"},
        "status": {"enum": ["paid", "open"]},
        "lineItems": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"quantity": {"type": "integer", "minimum": 1}},
                "required": ["quantity"],
            },
        },
    },
    "required": ["invoiceNumber", "lineItems"],
    "additionalProperties": False,
}


@pytest.fixture
def validator() -> SchemaValidator:
    return SchemaValidator()


class TestValidate:
    def test_valid(self, validator):
        result = validator.validate(
            {"invoiceNumber": "A1", "lineItems": [{"quantity": 2}]}, INVOICE,
        )
        assert result.valid is True
        assert result.errors == []

    def test_nested_minimum(self, validator):
        result = validator.validate(
            {"invoiceNumber": "A1", "lineItems": [{"quantity": 2}, {"quantity": 0}]}, INVOICE,
        )

        assert result.valid is False
        (finding,) = result.errors
        assert finding.field == "lineItems[1].quantity"
        assert finding.keyword == "minimum"
        assert finding.message == "Must be >= 1"
        assert finding.schema_path == "#/properties/lineItems/items/properties/quantity/minimum"
        assert finding.params == {"limit": 1}

    def test_every_missing_required_field_reported(self, validator):
        result = validator.validate({}, INVOICE)

        fields = sorted(f.field for f in result.errors)
        assert fields == ["invoiceNumber", "lineItems"]
        assert all(f.keyword == "required" for f in result.errors)
        assert result.errors[0].message.startswith('Required field "')

    def test_nested_required_field_path(self, validator):
        result = validator.validate({"invoiceNumber": "A1", "lineItems": [{}]}, INVOICE)

        assert [f.field for f in result.errors] == ["lineItems[0].quantity"]

    def test_additional_properties(self, validator):
        result = validator.validate(
            {"invoiceNumber": "A1", "lineItems": [], "extra": 1, "other": 2}, INVOICE,
        )

        extras = sorted(f.params["additionalProperty"] for f in result.errors)
        assert extras == ["extra", "other"]
        assert all(f.field == "(root)" for f in result.errors)

    def test_type_and_enum(self, validator):
        result = validator.validate(
            {"invoiceNumber": 5, "status": "void", "lineItems": []}, INVOICE,
        )

        by_field = {f.field: f for f in result.errors}
        assert by_field["invoiceNumber"].message == "Must be string"
        assert by_field["status"].message == "Must be one of: paid, open"

    def test_format_checked(self, validator):
        schema = {"type": "string", "format": "date"}
        result = validator.validate("not a date", schema)

        assert result.valid is False
        assert result.errors[0].keyword == "format"
        assert result.errors[0].message == 'Must match format "date"'

    def test_invalid_schema_is_a_finding(self, validator):
        result = validator.validate({}, {"type": "nonsense"})

        assert result.valid is False
        (finding,) = result.errors
        assert finding.field == "(schema)"
        assert finding.keyword == "schema"


class TestFormatting:
    def test_field_path(self):
        assert format_field_path(["a", 0, "b"]) == "a[0].b"
        assert format_field_path([]) == "(root)"
        assert format_field_path([2]) == "[2]"

    def test_schema_path(self):
        assert format_schema_path(["properties", "a", "type"]) == "#/properties/a/type"
        assert format_schema_path([]) == "#"

    @pytest.mark.parametrize(("keyword", "params", "expected"), [
        ("maxLength", {"limit": 3}, "Must be at most 3 characters"),
        ("minItems", {"limit": 1}, "Array must have at least 1 items"),
        ("pattern", {"pattern": "^A"}, "Must match pattern: ^A"),
        ("const", {"allowedValue": "x"}, 'Must be exactly: "x"'),
        ("type", {"type": ["string", "null"]}, "Must be string,null"),
        ("dependencies", {}, "Validation failed: dependencies"),
    ])
    def test_messages(self, keyword, params, expected):
        assert format_message(keyword, params) == expected

    def test_format_and_group(self):
        findings = [
            ValidationFinding(field="a", message="m1", keyword="type"),
            ValidationFinding(field="a", message="m2", keyword="minimum"),
            ValidationFinding(field="b", message="m3", keyword="required"),
        ]

        assert format_findings(findings) == ["a: m1", "a: m2", "b: m3"]
        assert group_by_field(findings) == {"a": "m1; m2", "b": "m3"}
