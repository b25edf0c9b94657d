from __future__ import annotations

import pytest

from orgmigrate.catalogs import get_catalog
from orgmigrate.errors import ConfigurationError
from orgmigrate.models.external_id import ExternalIdSpec
from orgmigrate.models.plan import SelectedRecord
from orgmigrate.services.query_builder import (
    QueryBuilder,
    SlaveLink,
    external_id_condition,
    record_key_condition,
)

RULE_IDS = ["a0A000000000001AAA", "a0A000000000002AAA"]


class TestExternalIdCondition:
    """Matching records by external id value."""

    def test_simple_key_is_in_list(self):
        condition, warnings = external_id_condition(ExternalIdSpec.parse("Name"), ["A", "B"])
        assert condition == "Name IN ('A', 'B')"
        assert warnings == []

    def test_composite_key_is_or_of_and_groups(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        condition, _ = external_id_condition(spec, ["Rule A|10", "Rule B|20"])
        assert condition == (
            "((SBQQ__Rule__r.Name = 'Rule A' AND SBQQ__Index__c = '10') OR "
            "(SBQQ__Rule__r.Name = 'Rule B' AND SBQQ__Index__c = '20'))"
        )

    def test_partial_composite_value_is_dropped_with_warning(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        condition, warnings = external_id_condition(spec, ["Rule A|10", "Rule B|"])
        assert condition == "(SBQQ__Rule__r.Name = 'Rule A' AND SBQQ__Index__c = '10')"
        assert len(warnings) == 1
        assert "Rule B|" in warnings[0]

    def test_nothing_usable(self):
        spec = ExternalIdSpec.parse("A__c;B__c")
        condition, warnings = external_id_condition(spec, ["x"])
        assert condition is None
        assert warnings


class TestRecordKeyCondition:
    """Matching by key values read from the other org."""

    def test_numeric_parts_are_unquoted(self):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        condition = record_key_condition(spec, [("Rule A", 10.0), ("Rule B", 20)])
        assert condition == (
            "((SBQQ__Rule__r.Name = 'Rule A' AND SBQQ__Index__c = 10) OR "
            "(SBQQ__Rule__r.Name = 'Rule B' AND SBQQ__Index__c = 20))"
        )

    def test_simple_key_is_in_list(self):
        spec = ExternalIdSpec.parse("SBQQ__Number__c")
        assert record_key_condition(spec, [(1.0,), (2.5,)]) == "SBQQ__Number__c IN (1, 2.5)"
        assert record_key_condition(spec, []) is None


class TestQueryBuilder:
    """Per-object statements from the CPQ catalog."""

    @pytest.fixture
    def builder(self):
        return QueryBuilder(get_catalog("cpq"))

    def test_master_selection_by_id(self, builder):
        selection = [SelectedRecord("Rule A", RULE_IDS[0]), SelectedRecord("Rule B", RULE_IDS[1])]
        built = builder.build("SBQQ__ProductRule__c", ExternalIdSpec.parse("Name"), 2, selection=selection)
        assert built.query == (
            "SELECT all FROM SBQQ__ProductRule__c "
            "WHERE Id IN ('a0A000000000001AAA', 'a0A000000000002AAA')"
        )

    def test_mixed_selection_is_or(self, builder):
        selection = [SelectedRecord("Rule A", RULE_IDS[0]), SelectedRecord("Rule C")]
        built = builder.build("SBQQ__ProductRule__c", ExternalIdSpec.parse("Name"), 2, selection=selection)
        assert built.query.endswith("WHERE (Id IN ('a0A000000000001AAA') OR Name IN ('Rule C'))")

    def test_unusable_selection_selects_nothing(self, builder):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        built = builder.build("SBQQ__ErrorCondition__c", spec, 2, selection=[SelectedRecord("Rule A")])
        assert built.query.endswith("WHERE Id = null")
        assert built.warnings

    def test_slave_follows_parent_ids(self, builder):
        spec = ExternalIdSpec.parse("SBQQ__Rule__r.Name;SBQQ__Index__c")
        link = SlaveLink("SBQQ__ProductRule__c", "SBQQ__Rule__c", RULE_IDS)
        built = builder.build("SBQQ__ErrorCondition__c", spec, 2, slave_link=link)
        assert built.query == (
            "SELECT all, SBQQ__Rule__c, SBQQ__Rule__r.Name FROM SBQQ__ErrorCondition__c "
            "WHERE SBQQ__Rule__c IN ('a0A000000000001AAA', 'a0A000000000002AAA')"
        )
        assert not built.deferred

    def test_slave_without_parent_ids_is_deferred(self, builder):
        spec = ExternalIdSpec.parse("Name")
        built = builder.build(
            "SBQQ__LookupQuery__c", spec, 2,
            slave_link=SlaveLink("SBQQ__ProductRule__c", "SBQQ__ProductRule__c"),
        )
        assert built.deferred
        assert built.query == "SELECT all FROM SBQQ__LookupQuery__c WHERE SBQQ__ProductRule__c != null"

    def test_condition_order(self, builder):
        built = builder.build(
            "Pricebook2",
            ExternalIdSpec.parse("Name"),
            1,
            modified_since="2024-01-31",
            custom_filter="CurrencyIsoCode = 'USD' AND Name != null",
            selection=[SelectedRecord("Standard", "01s000000000001AAA")],
        )
        assert built.conditions == [
            "IsStandard = false",
            "LastModifiedDate >= 2024-01-31T00:00:00.000Z",
            "CurrencyIsoCode = 'USD'",
            "Name != null",
            "Id IN ('01s000000000001AAA')",
        ]

    def test_guarded_object_forces_empty_set(self, builder):
        built = builder.build("SBQQ__Quote__c", ExternalIdSpec.parse("Name"))
        assert built.guard is not None
        assert built.query == "SELECT all FROM SBQQ__Quote__c WHERE Id = null"

    def test_opted_in_product2_is_not_guarded(self, builder):
        built = builder.build(
            "Product2", ExternalIdSpec.parse("ProductCode"), 1,
            selection=[SelectedRecord("SKU-1")], opted_in=["Product2"],
        )
        assert built.guard is None
        assert built.query == "SELECT all FROM Product2 WHERE ProductCode IN ('SKU-1')"

    def test_invalid_modified_since(self, builder):
        with pytest.raises(ConfigurationError):
            builder.build("Pricebook2", ExternalIdSpec.parse("Name"), modified_since="31/01/2024")

    def test_explicit_fields_order_and_limit(self):
        built = QueryBuilder().build(
            "Account",
            ExternalIdSpec.parse("Parent.Name"),
            selected_fields=["Name", "Id"],
            order_by="Name",
            limit=10,
        )
        assert built.query == "SELECT Id, Name, ParentId, Parent.Name FROM Account ORDER BY Name LIMIT 10"

    def test_identical_input_gives_identical_output(self, builder):
        kwargs = dict(selection=[SelectedRecord("Rule A", RULE_IDS[0])], modified_since="2024-01-01")
        first = builder.build("SBQQ__ProductRule__c", ExternalIdSpec.parse("Name"), 2, **kwargs)
        second = builder.build("SBQQ__ProductRule__c", ExternalIdSpec.parse("Name"), 2, **kwargs)
        assert first.query == second.query
