# tests/unit/schema/test_schema_library.py - v1
"""Tests for schema/library.py and schema/builtin.py."""

from __future__ import annotations

import json

import pytest

from visiontester.schema.builtin import BUILTIN_MODELS, ConstructionOrder, OrderList
from visiontester.schema.cleaner import verify_schema_structure
from visiontester.schema.library import (
    SchemaLibrary,
    SchemaLibraryError,
    SchemaNotFoundError,
    builtin_entries,
    schema_id_for,
)
from visiontester.schema.validator import SchemaValidator

from tests.fakes import INVOICE_SCHEMA


@pytest.fixture
def library(tmp_path) -> SchemaLibrary:
    return SchemaLibrary(tmp_path / "lib" / "schemas.json")


class TestBuiltins:
    def test_entries_match_models(self):
        assert [e.id for e in builtin_entries()] == list(BUILTIN_MODELS)
        assert all(e.builtin for e in builtin_entries())

    @pytest.mark.parametrize("entry", builtin_entries(), ids=lambda e: e.id)
    def test_definitions_are_server_ready(self, entry):
        text = json.dumps(entry.definition)
        assert "$ref" not in text
        assert "$defs" not in text
        assert verify_schema_structure(entry.definition) == []

    def test_construction_order_uses_camel_case_keys(self):
        entry = next(e for e in builtin_entries() if e.id == "construction-order")
        props = entry.definition["properties"]

        assert {"orderNumber", "projectName", "totalAmount"} <= set(props)
        assert props["items"]["anyOf"][0]["items"]["required"] == ["description", "quantity"]

    def test_construction_order_accepts_camel_case_output(self):
        order = ConstructionOrder.model_validate({
            "orderNumber": "A-17", "date": "2026-01-01",
            "items": [{"description": "Beam", "quantity": 2, "unitPrice": 10.5}],
        })
        assert order.items[0].unit_price == 10.5

    def test_order_list_validates_sample(self):
        totals = {
            "STK": 3, "total_length": 12.0, "total_length_unit": "m",
            "total_volume": 0.4, "total_volume_unit": "m3",
            "total_area": 2.0, "total_area_unit": None,
            "SBruttoL": 12.5, "SBruttoL_unit": "m",
        }
        sample = {
            "contactInfo": {"phone": "1", "fax": "2", "website": "w", "email": "e"},
            "order": {
                "date": "2026-01-01", "Construction_project": "Hall",
                "Construction_project_no": None, "Location": "Bern",
                "Customer_name": "ACME", "Customer_no": 42, "processor": "JD",
            },
            "partial_list": [{
                "list_name": None,
                "items": [{
                    "STK": 3, "name": "KVH", "sku": "K-1",
                    "width": 6, "width_unit": "cm", "height": 12, "height_unit": "cm",
                    "length": 4, "length_unit": "m",
                    "total_length": 12, "total_length_unit": "m",
                    "volume": 0.4, "volume_unit": "m3",
                }],
                "partial_list_total": totals,
            }],
            "total_OrderList": totals,
        }
        entry = next(e for e in builtin_entries() if e.id == "order-list")

        assert OrderList.model_validate(sample).order.Customer_no == 42
        assert SchemaValidator().validate(sample, entry.definition).valid


class TestSchemaIds:
    @pytest.mark.parametrize(("name", "expected"), [
        ("Invoice", "invoice"),
        ("Invoice v2.json", "invoice-v2-json"),
        ("  Lieferschein / Nr ", "lieferschein-nr"),
    ])
    def test_slug(self, name, expected):
        assert schema_id_for(name) == expected

    def test_empty_slug_rejected(self):
        with pytest.raises(SchemaLibraryError):
            schema_id_for("///")


class TestLibrary:
    def test_empty_library_lists_builtins(self, library):
        assert [e.id for e in library.list_schemas()] == ["construction-order", "order-list"]
        assert library.selected() is None
        assert not library.path.exists()

    def test_add_and_get(self, library):
        entry = library.add("invoice", "Invoice", INVOICE_SCHEMA)

        assert entry.builtin is False
        assert library.get("invoice").definition == INVOICE_SCHEMA
        assert [e.id for e in library.list_schemas()][-1] == "invoice"

    def test_add_replaces_same_id(self, library):
        library.add("invoice", "Invoice", INVOICE_SCHEMA)
        library.add("invoice", "Invoice v2", {"type": "object"})

        user = [e for e in library.list_schemas() if not e.builtin]
        assert [(e.id, e.name) for e in user] == [("invoice", "Invoice v2")]

    def test_builtin_id_reserved(self, library):
        with pytest.raises(SchemaLibraryError):
            library.add("order-list", "Mine", INVOICE_SCHEMA)

    def test_invalid_schema_rejected(self, library):
        with pytest.raises(SchemaLibraryError):
            library.add("bad", "Bad", {"type": "not-a-type"})
        assert library.get("bad") is None

    def test_add_from_file(self, library, tmp_path):
        path = tmp_path / "Delivery Note.json"
        path.write_text(json.dumps(INVOICE_SCHEMA), encoding="utf-8")

        entry = library.add_from_file(path)

        assert entry.id == "delivery-note"
        assert entry.name == "Delivery Note"

    def test_add_from_file_with_overrides(self, library, tmp_path):
        path = tmp_path / "x.json"
        path.write_text(json.dumps(INVOICE_SCHEMA), encoding="utf-8")

        entry = library.add_from_file(path, name="Invoice", schema_id="inv")

        assert (entry.id, entry.name) == ("inv", "Invoice")

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_add_from_bad_file(self, library, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(SchemaLibraryError):
            library.add_from_file(path)

    def test_add_from_missing_file(self, library, tmp_path):
        with pytest.raises(SchemaLibraryError):
            library.add_from_file(tmp_path / "missing.json")

    def test_persists_across_instances(self, library):
        library.add("invoice", "Invoice", INVOICE_SCHEMA)
        library.select("invoice")

        reopened = SchemaLibrary(library.path)

        assert reopened.selected().id == "invoice"

    def test_select_builtin_and_clear(self, library):
        assert library.select("order-list").id == "order-list"
        assert library.selected_id == "order-list"

        assert library.select(None) is None
        assert library.selected_id is None

    def test_select_unknown(self, library):
        with pytest.raises(SchemaNotFoundError):
            library.select("nope")

    def test_remove_clears_selection(self, library):
        library.add("invoice", "Invoice", INVOICE_SCHEMA)
        library.select("invoice")

        assert library.remove("invoice") is True
        assert library.remove("invoice") is False
        assert library.selected_id is None

    def test_remove_builtin_rejected(self, library):
        with pytest.raises(SchemaLibraryError):
            library.remove("construction-order")

    def test_require(self, library):
        assert library.require("order-list").builtin is True
        with pytest.raises(SchemaNotFoundError) as exc_info:
            library.require("nope")
        assert exc_info.value.schema_id == "nope"

    def test_corrupt_file_raises(self, library):
        library.path.parent.mkdir(parents=True)
        library.path.write_text("{broken", encoding="utf-8")
        with pytest.raises(SchemaLibraryError):
            library.list_schemas()
