from __future__ import annotations

import pytest

from orgmigrate.models.external_id import ExternalIdSpec, KeyPart, lookup_path


class TestKeyPart:
    """Relationship traversal helpers."""

    def test_custom_relationship_maps_to_custom_lookup(self):
        part = KeyPart("SBQQ__Rule__r.Name")
        assert part.is_traversal
        assert part.relationship == "SBQQ__Rule__r"
        assert part.base_lookup_field == "SBQQ__Rule__c"

    def test_standard_relationship_maps_to_id_lookup(self):
        assert KeyPart("Product2.StockKeepingUnit").base_lookup_field == "Product2Id"

    def test_direct_field_has_no_lookup(self):
        part = KeyPart("Name")
        assert not part.is_traversal
        assert part.base_lookup_field is None


class TestExternalIdSpec:
    """Parsing, field derivation and composite values."""

    def test_parse_keeps_declared_order(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name; SBQQ__Index__c")
        assert spec.fields == ["SBQQ__Rule__r.Name", "SBQQ__Index__c"]
        assert spec.is_composite
        assert spec.serialize() == "SBQQ__Rule__r.Name;SBQQ__Index__c"

    def test_parse_rejects_empty(self):
        with pytest.raises(ValueError):
            ExternalIdSpec.parse(" ; ")

    def test_relationship_fields_put_lookups_first(self):
        spec = ExternalIdSpec.parse("SBQQ__PriceBook__r.Name;SBQQ__Product__r.ProductCode;SBQQ__Type__c")
        assert spec.relationship_fields() == [
            "SBQQ__PriceBook__c",
            "SBQQ__Product__c",
            "SBQQ__PriceBook__r.Name",
            "SBQQ__Product__r.ProductCode",
        ]
        assert spec.direct_fields == ["SBQQ__Type__c"]

    def test_encode_and_decode_composite_value(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        assert spec.encode_value(["Rule A", "10"]) == "Rule A|10"
        assert spec.decode_value("Rule A|10") == ["Rule A", "10"]

    def test_encode_rejects_wrong_arity_and_delimiter(self):
        spec = ExternalIdSpec.parse("A__c;B__c")
        with pytest.raises(ValueError):
            spec.encode_value(["only one"])
        with pytest.raises(ValueError):
            spec.encode_value(["a|b", "c"])

    def test_simple_value_is_not_split(self):
        spec = ExternalIdSpec.parse("Name")
        assert spec.decode_value("a|b") == ["a|b"]

    def test_value_for_record_reads_nested_relationships(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        record = {"SBQQ__Rule__r": {"Name": "Rule A"}, "SBQQ__Index__c": 10}
        assert spec.value_for_record(record) == "Rule A|10"

    def test_value_for_record_requires_every_part(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        assert spec.value_for_record({"SBQQ__Rule__r": None, "SBQQ__Index__c": 10}) is None

    def test_lookup_path_stops_at_missing_relationship(self):
        assert lookup_path({"A__r": None}, "A__r.Name") is None

    def test_integral_floats_are_written_without_fraction(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        record = {"SBQQ__Rule__r": {"Name": "Rule A"}, "SBQQ__Index__c": 10.0}
        assert spec.value_for_record(record) == "Rule A|10"

    def test_key_for_record_keeps_store_types(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        record = {"SBQQ__Rule__r": {"Name": "Rule A"}, "SBQQ__Index__c": 10.0}
        assert spec.key_for_record(record) == ("Rule A", 10.0)
        assert spec.key_for_record({"SBQQ__Rule__r": {"Name": ""}, "SBQQ__Index__c": 1}) is None
