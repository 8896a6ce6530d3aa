import json

import pytest
from pydantic import ValidationError

from dbtgen.documents.models import (
    DocumentKind,
    RuleSet,
    Schema,
    TableRule,
    empty_document,
    rules_summary,
)


class TestSchemaModel:

    def test_validates_from_camel_case_payload(self, schema_json):
        schema = Schema.model_validate(json.loads(schema_json))

        assert schema.file_name == "dataset-orders.csv"
        table = schema.tables[0]
        assert table.table_name == "orders"
        assert table.sheet_name == "orders"
        assert table.primary_key.columns == ["order_id"]
        assert table.primary_key.kind == "simple"
        assert table.columns[0].is_primary_key is True
        assert table.columns[1].is_pii is True
        assert schema.modeling_recommendations == ["Partition orders by date"]

    def test_null_lists_become_empty(self):
        schema = Schema.model_validate({
            "schemas": [{"tableName": "t", "columns": None}],
            "relationships": None,
            "suggestedJoins": None,
        })
        assert schema.tables[0].columns == []
        assert schema.relationships == []
        assert schema.suggested_joins == []
        assert schema.modeling_recommendations == []

    def test_display_flags_use_class_key(self):
        schema = Schema.model_validate({
            "schemas": [{"columns": [{"name": "email", "isPII": None, "flags": [{"label": "PII", "class": "bg-danger"}]}]}],
        })
        column = schema.tables[0].columns[0]
        assert column.is_pii is False
        assert column.flags[0].css_class == "bg-danger"
        assert schema.to_json_dict()["schemas"][0]["columns"][0]["flags"] == [{"label": "PII", "class": "bg-danger"}]

    def test_unknown_keys_are_ignored(self):
        schema = Schema.model_validate({"schemas": [], "somethingElse": 1})
        assert "somethingElse" not in schema.to_json_dict()

    def test_wrong_shape_is_rejected(self):
        with pytest.raises(ValidationError):
            Schema.model_validate({"schemas": "orders"})


class TestRuleSetModel:

    def test_validates_tests_in_both_forms(self):
        rule_set = RuleSet.model_validate({
            "dbtRules": [{
                "tableName": "orders",
                "tests": [{
                    "column": "status",
                    "tests": ["not_null", {"accepted_values": {"values": ["open", "closed"]}}],
                    "relationships": [{"test": "relationships", "to": "ref('customers')", "field": "id"}],
                }],
            }],
        })
        column_test = rule_set.rules[0].tests[0]
        assert column_test.tests[0] == "not_null"
        assert column_test.tests[1] == {"accepted_values": {"values": ["open", "closed"]}}
        assert column_test.relationships[0].to == "ref('customers')"

    def test_documents_are_frozen(self):
        rule_set = RuleSet(rules=[TableRule(table_name="orders")])
        with pytest.raises(ValidationError):
            rule_set.summary = "changed"

    def test_find_rule(self):
        rule_set = RuleSet(rules=[TableRule(table_name="orders"), TableRule(table_name="customers")])
        assert rule_set.find_rule("customers").table_name == "customers"
        assert rule_set.find_rule("missing") is None

    def test_json_dict_uses_wire_keys(self, rules_json):
        rule_set = RuleSet.model_validate(json.loads(rules_json))
        data = rule_set.to_json_dict()
        assert data["dbtRules"][0]["tableName"] == "orders"
        assert data["dbtRules"][0]["modelSql"] == "SELECT * FROM {{ seed('orders') }}"
        assert data["globalRecommendations"] == ["use incremental models"]
        assert "summary" not in data


@pytest.mark.parametrize("kind", list(DocumentKind))
def test_empty_document_has_every_list_empty(kind):
    document = empty_document(kind)
    lists = [value for value in document.model_dump().values() if isinstance(value, list)]
    assert lists
    assert all(value == [] for value in lists)


class TestRulesSummary:

    def test_joins_global_recommendations(self):
        rule_set = RuleSet(global_recommendations=["first", "second"])
        assert rules_summary(rule_set) == "first\n\nsecond"

    def test_without_recommendations(self):
        assert rules_summary(None) == "No DBT rules summary available."
        assert rules_summary(RuleSet()) == "No DBT rules summary available."
