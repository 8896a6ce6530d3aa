import json
import unittest

import pytest

from dbtgen.common.errors import ErrorCode, FinalizeError
from dbtgen.documents.models import DocumentKind, RuleSet, Schema
from dbtgen.documents.session import DocumentSession, DocumentState, coerce_document


class TestDocumentSessionLifecycle(unittest.TestCase):

    def setUp(self):
        self.session = DocumentSession(DocumentKind.RULE_SET)

    def test_begin_yields_iterable_empty_document(self):
        value = self.session.begin()

        self.assertEqual(self.session.state, DocumentState.EMPTY)
        self.assertIsInstance(value, RuleSet)
        self.assertEqual(self.session.current_value().rules, [])
        self.assertEqual(self.session.current_value().global_recommendations, [])

    def test_partial_value_moves_to_streaming(self):
        self.session.begin()
        accepted = self.session.on_stream_progress({"dbtRules": [{"tableName": "orders"}]})

        self.assertTrue(accepted)
        self.assertEqual(self.session.state, DocumentState.STREAMING)
        self.assertEqual(self.session.current_value().rules[0].table_name, "orders")
        self.assertEqual(self.session.current_value().global_recommendations, [])

    def test_unusable_partial_is_swallowed(self):
        self.session.begin()
        self.session.on_stream_progress({"dbtRules": [{"tableName": "orders"}]})

        self.assertFalse(self.session.on_stream_progress(17))
        self.assertFalse(self.session.on_stream_progress({"dbtRules": "orders"}))
        self.assertEqual(self.session.state, DocumentState.STREAMING)
        self.assertEqual(self.session.current_value().rules[0].table_name, "orders")

    def test_finalize_parses_strictly(self):
        self.session.begin()
        text = '{"dbtRules":[{"tableName":"orders","materialization":"table"}],"globalRecommendations":["use incremental models"]}'

        document = self.session.finalize(text)

        self.assertTrue(self.session.is_finalized)
        self.assertEqual(document.rules[0].materialization, "table")
        self.assertIs(self.session.current_value(), document)

    def test_finalize_failure_keeps_streaming_value(self):
        self.session.begin()
        self.session.on_stream_progress({"dbtRules": [{"tableName": "orders"}]})

        with self.assertRaises(FinalizeError) as ctx:
            self.session.finalize('{"dbtRules": [{"tableName": "orders"')

        self.assertEqual(ctx.exception.error_code, ErrorCode.FINALIZE_PARSE_FAILED)
        self.assertIn("DBT rules generation returned invalid JSON", ctx.exception.message)
        self.assertEqual(self.session.state, DocumentState.STREAMING)
        self.assertEqual(self.session.current_value().rules[0].table_name, "orders")

    def test_finalize_rejects_wrong_shape(self):
        self.session.begin()
        with self.assertRaises(FinalizeError) as ctx:
            self.session.finalize("[1, 2, 3]")
        self.assertEqual(ctx.exception.error_code, ErrorCode.DOCUMENT_SHAPE_INVALID)
        self.assertEqual(self.session.state, DocumentState.STREAMING)

    def test_finalize_failure_without_partials_is_streaming(self):
        self.session.begin()

        with self.assertRaises(FinalizeError):
            self.session.finalize("not json")

        self.assertEqual(self.session.state, DocumentState.STREAMING)
        self.assertFalse(self.session.is_finalized)
        self.assertEqual(self.session.current_value(), RuleSet())

    def test_partials_after_finalize_are_ignored(self):
        self.session.begin()
        self.session.finalize('{"dbtRules": [{"tableName": "orders"}]}')

        self.assertFalse(self.session.on_stream_progress({"dbtRules": []}))
        self.assertEqual(len(self.session.current_value().rules), 1)

    def test_begin_again_supersedes_previous_value(self):
        self.session.begin()
        self.session.finalize('{"dbtRules": [{"tableName": "orders"}]}')

        self.session.begin()

        self.assertEqual(self.session.state, DocumentState.EMPTY)
        self.assertEqual(self.session.current_value().rules, [])


def test_default_summary_from_recommendations():
    session = DocumentSession(DocumentKind.RULE_SET)
    session.begin()
    document = session.finalize(json.dumps({"dbtRules": [], "globalRecommendations": ["a", "b"]}))
    assert document.summary == "a\n\nb"


def test_explicit_summary_is_kept():
    session = DocumentSession(DocumentKind.RULE_SET)
    session.begin()
    document = session.finalize(json.dumps({"globalRecommendations": ["a"], "summary": "Short"}))
    assert document.summary == "Short"


def test_finalize_round_trip_for_schema(schema_json):
    session = DocumentSession(DocumentKind.SCHEMA)
    session.begin()
    session.finalize(schema_json)
    assert session.current_value() == coerce_document(DocumentKind.SCHEMA, json.loads(schema_json))


def test_schema_session_coerces_missing_keys():
    session = DocumentSession(DocumentKind.SCHEMA)
    session.begin()
    session.on_stream_progress({"schemas": [{"tableName": "orders"}]})
    value = session.current_value()
    assert isinstance(value, Schema)
    assert value.relationships == []
    assert value.tables[0].columns == []


def test_finalize_of_empty_text_fails():
    session = DocumentSession(DocumentKind.SCHEMA)
    with pytest.raises(FinalizeError):
        session.finalize("")
    assert session.current_value() is None
