from __future__ import annotations

import pytest

from orgmigrate import soql


class TestSoqlHelpers:
    """Slicing of generated statements."""

    QUERY = (
        "SELECT Id, Name FROM SBQQ__LookupQuery__c "
        "WHERE (SBQQ__PriceRule__c != null OR SBQQ__PriceRule2__c != null) "
        "AND Name = 'Where AND From' ORDER BY Name LIMIT 50"
    )

    def test_object_and_fields(self):
        assert soql.object_from_query(self.QUERY) == "SBQQ__LookupQuery__c"
        assert soql.select_fields(self.QUERY) == ["Id", "Name"]

    def test_where_clause_stops_before_tail(self):
        assert soql.where_clause(self.QUERY) == (
            "(SBQQ__PriceRule__c != null OR SBQQ__PriceRule2__c != null) AND Name = 'Where AND From'"
        )
        assert soql.where_clause("SELECT Id FROM Account") is None

    def test_split_conditions_respects_parentheses_and_literals(self):
        assert soql.split_conditions(soql.where_clause(self.QUERY)) == [
            "(SBQQ__PriceRule__c != null OR SBQQ__PriceRule2__c != null)",
            "Name = 'Where AND From'",
        ]

    def test_limit_clause(self):
        assert soql.limit_clause(self.QUERY) == "LIMIT 50"

    def test_replace_select_fields_keeps_rest(self):
        replaced = soql.replace_select_fields("SELECT all FROM Pricebook2 WHERE IsStandard = false", ["Id", "Name"])
        assert replaced == "SELECT Id, Name FROM Pricebook2 WHERE IsStandard = false"

    def test_replace_select_fields_rejects_non_select(self):
        with pytest.raises(ValueError):
            soql.replace_select_fields("DELETE Account", ["Id"])

    def test_quote_escapes(self):
        assert soql.quote("O'Brien") == "'O\\'Brien'"
        assert soql.in_list("Name", ["a", "b"]) == "Name IN ('a', 'b')"

    def test_user_filter_splits_on_every_and(self):
        assert soql.split_user_filter("A = 1 and B = 2 AND C = 3") == ["A = 1", "B = 2", "C = 3"]

    def test_chunked(self):
        assert list(soql.chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]

    def test_literal_keeps_numbers_unquoted(self):
        assert soql.literal(10.0) == "10"
        assert soql.literal(2.5) == "2.5"
        assert soql.literal(7) == "7"
        assert soql.literal(True) == "true"
        assert soql.literal(None) == "null"
        assert soql.literal("10") == "'10'"
