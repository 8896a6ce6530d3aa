import asyncio
import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from dbtgen.chat import (
    WORKING_INDICATOR,
    ChatContext,
    ChatRouter,
    Intent,
    KeywordIntentClassifier,
    extract_patch,
)
from dbtgen.common.errors import ErrorCode, PatchParseError
from dbtgen.documents.models import RuleSet

SENTINEL = "DBT_RULE_JSON:"


@pytest.fixture
def rules():
    return RuleSet.model_validate({
        "dbtRules": [{"tableName": "orders", "materialization": "table"}],
        "globalRecommendations": ["use incremental models"],
    })


@pytest.fixture
def scripted_llm(streamed):
    """Chat source double: streams a fixed reply and records the prompts it was given."""
    class ScriptedLLM:
        def __init__(self):
            self.reply = ""
            self.prompts = []

        def __call__(self, messages):
            self.prompts.append(list(messages))
            return streamed(self.reply, step=4)

    return ScriptedLLM()


@pytest.fixture
def router(scripted_llm):
    return ChatRouter(scripted_llm, sentinel=SENTINEL)


class TestRouting:

    def test_plain_question(self, router, rules):
        assert router.route("What does the email column mean?", rules) == Intent.PLAIN_QUESTION

    def test_rule_edit(self, router, rules):
        assert router.route("Add a not-null rule to the orders table", rules) == Intent.STRUCTURAL_EDIT

    def test_keyword_match_is_case_insensitive(self, rules):
        assert KeywordIntentClassifier().classify("Regenerate the DBT models", rules) == Intent.STRUCTURAL_EDIT

    def test_custom_classifier_is_used(self, scripted_llm, rules):
        classifier = KeywordIntentClassifier(keywords=("please change",))
        router = ChatRouter(scripted_llm, classifier=classifier, sentinel=SENTINEL)
        assert router.route("Add a rule", rules) == Intent.PLAIN_QUESTION
        assert router.route("Please change the orders model", rules) == Intent.STRUCTURAL_EDIT


class TestExtractPatch:

    def test_absent_sentinel(self):
        assert extract_patch("Just prose.", SENTINEL) is None

    def test_payload_after_prose(self):
        text = f'Here you go.\n{SENTINEL} {{"dbtRules": [{{"tableName": "orders", "isNewRule": true}}]}}'
        patch = extract_patch(text, SENTINEL)
        assert patch.rules[0].table_name == "orders"
        assert patch.rules[0].is_new_rule is True
        assert patch.summary is None

    def test_sentinel_without_object(self):
        with pytest.raises(PatchParseError) as exc_info:
            extract_patch(f"{SENTINEL} nothing here", SENTINEL)
        assert exc_info.value.raw_text == f"{SENTINEL} nothing here"

    def test_invalid_json(self):
        with pytest.raises(PatchParseError, match="Invalid JSON"):
            extract_patch(f'{SENTINEL} {{"dbtRules": [}}', SENTINEL)

    def test_wrong_shape(self):
        with pytest.raises(PatchParseError, match="Invalid rule changes"):
            extract_patch(f'{SENTINEL} {{"dbtRules": [{{"materialization": "view"}}]}}', SENTINEL)


class TestPlainQuestion:

    def test_streams_reply_verbatim_with_history(self, router, scripted_llm, rules):
        scripted_llm.reply = "The email column holds the customer's address."
        history = [HumanMessage(content="hi"), AIMessage(content="hello")]
        progress = []

        reply = asyncio.run(router.respond(
            "What does the email column mean?",
            ChatContext(rules=rules),
            history=history,
            on_progress=progress.append,
        ))

        assert reply.intent == Intent.PLAIN_QUESTION
        assert reply.message == scripted_llm.reply
        assert progress[-1] == scripted_llm.reply
        assert reply.updated_rules is None

        prompt = scripted_llm.prompts[0]
        assert isinstance(prompt[0], SystemMessage)
        assert '"dbtRules"' in prompt[0].content
        assert prompt[1:3] == history
        assert prompt[-1].content == "What does the email column mean?"

    def test_attachment_is_described(self, router, scripted_llm, parsed_file):
        scripted_llm.reply = "Looks like orders."
        asyncio.run(router.respond("What is in this file?", ChatContext(attached_file=parsed_file)))
        assert "The user has attached a new file: dataset-orders.csv" in scripted_llm.prompts[0][0].content


class TestStructuralEdit:

    def test_patch_is_reconciled_and_hidden(self, router, scripted_llm, rules):
        patch = {"dbtRules": [{"tableName": "orders", "materialization": "view"}]}
        scripted_llm.reply = f"Updating the orders model.\n{SENTINEL} {json.dumps(patch)}"
        progress = []

        reply = asyncio.run(router.respond(
            "Make the orders rule a view",
            ChatContext(rules=rules),
            history=[HumanMessage(content="earlier")],
            on_progress=progress.append,
        ))

        assert reply.intent == Intent.STRUCTURAL_EDIT
        assert reply.updated_rules.find_rule("orders").materialization == "view"
        assert reply.last_modified_table == "orders"
        assert reply.message == "### DBT Rules Updated\n\n**Modified:**\n- Modified rule for table 'orders'\n"
        assert rules.find_rule("orders").materialization == "table"

        first_working = progress.index(WORKING_INDICATOR)
        assert all(item == WORKING_INDICATOR for item in progress[first_working:])
        assert not any('"dbtRules"' in item for item in progress)

        prompt = scripted_llm.prompts[0]
        assert len(prompt) == 2
        assert SENTINEL in prompt[0].content

    def test_reply_without_sentinel_is_shown_verbatim(self, router, scripted_llm, rules):
        scripted_llm.reply = "The orders rule tests order_id for nulls."
        reply = asyncio.run(router.respond("Which rule covers order_id?", ChatContext(rules=rules)))

        assert reply.intent == Intent.STRUCTURAL_EDIT
        assert reply.message == scripted_llm.reply
        assert reply.updated_rules is None

    def test_broken_patch_reports_raw_response(self, router, scripted_llm, rules):
        scripted_llm.reply = f'{SENTINEL} {{"dbtRules": [{{"tableName": "orders",}}'
        reply = asyncio.run(router.respond("Change the orders rule", ChatContext(rules=rules)))

        assert reply.message.startswith("Error processing DBT rule changes:")
        assert reply.message.endswith(scripted_llm.reply)
        assert reply.status.error_code == ErrorCode.PATCH_PARSE_FAILED
        assert reply.updated_rules is None

    def test_patch_before_rules_exist(self, router, scripted_llm):
        scripted_llm.reply = f'{SENTINEL} {{"dbtRules": [{{"tableName": "orders"}}]}}'
        reply = asyncio.run(router.respond("Add a rule for orders", ChatContext()))

        assert reply.status.error_code == ErrorCode.RULES_NOT_GENERATED
        assert "generate DBT rules first" in reply.message
        assert reply.updated_rules is None
