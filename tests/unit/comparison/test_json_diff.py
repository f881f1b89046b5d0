# tests/unit/comparison/test_json_diff.py - v1
"""Tests for comparison/json_diff.py."""

from __future__ import annotations

from visiontester.comparison.json_diff import diff_outputs, diff_values
from visiontester.core.models import Output
from visiontester.storage import run_manager


class TestDiffValues:
    def test_identical(self):
        result = diff_values({"a": [1, {"b": 2}]}, {"a": [1, {"b": 2}]})
        assert result.has_differences is False

    def test_added_removed_modified(self):
        left = {"vendor": "ACME", "total": 10, "notes": "x"}
        right = {"vendor": "ACME Corp", "total": 10, "currency": "EUR"}

        result = diff_values(left, right)

        assert result.has_differences is True
        assert result.added_fields == ["currency"]
        assert result.removed_fields == ["notes"]
        assert result.modified_fields == ["vendor"]

    def test_nested_list_paths(self):
        left = {"lineItems": [{"quantity": 1}, {"quantity": 2}]}
        right = {"lineItems": [{"quantity": 1}, {"quantity": 3}, {"quantity": 4}]}

        result = diff_values(left, right)

        assert result.modified_fields == ["lineItems[1].quantity"]
        assert result.added_fields == ["lineItems[2]"]

    def test_bool_is_not_int(self):
        assert diff_values({"paid": True}, {"paid": 1}).modified_fields == ["paid"]

    def test_type_change(self):
        assert diff_values({"a": {"b": 1}}, {"a": [1]}).modified_fields == ["a"]

    def test_root_scalar(self):
        assert diff_values(1, 2).modified_fields == ["(root)"]


class TestDiffOutputs:
    def test_missing_parsed_is_empty_object(self, sample_draft):
        left = run_manager.new_record(sample_draft)
        right = run_manager.new_record(sample_draft).model_copy(
            update={"output": Output(parsed={"total": 5})}
        )

        result = diff_outputs(left, right)

        assert result.added_fields == ["total"]
