from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, AsyncIterable, Callable, Dict, List, Optional, Protocol, Sequence

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from pydantic import BaseModel, Field, ValidationError

from dbtgen.common.errors import PatchParseError, RulesNotGeneratedError, StatusMessage
from dbtgen.common.logger import get_logger
from dbtgen.common.settings import settings
from dbtgen.documents.models import RuleSet, Schema
from dbtgen.files.models import ParsedFile
from dbtgen.reconcile import ChangeLogEntry, PatchRuleSet, format_change_log, reconcile
from dbtgen.streaming.consumer import StreamChunk, StreamConsumer
from .prompts import CHAT_SYSTEM_PROMPT, RULE_EDIT_SYSTEM_PROMPT, WORKING_INDICATOR

logger = get_logger("chat_router")

SourceFactory = Callable[[Sequence[BaseMessage]], AsyncIterable[StreamChunk]]
ReplyCallback = Callable[[str], None]


class Intent(str, Enum):
    STRUCTURAL_EDIT = "structural_edit"
    PLAIN_QUESTION = "plain_question"


class IntentClassifier(Protocol):
    def classify(self, message: str, rule_set: Optional[RuleSet]) -> Intent:
        ...


class KeywordIntentClassifier:
    """Routes to a rule edit when the message mentions any keyword.

    A coarse heuristic: "What rule covers email?" is routed as an edit too.
    The edit prompt still lets the model answer in prose, in which case no
    patch is applied.
    """

    def __init__(self, keywords: Sequence[str] = ("rule", "dbt")):
        self.keywords = tuple(k.lower() for k in keywords)

    def classify(self, message: str, rule_set: Optional[RuleSet]) -> Intent:
        text = message.lower()
        if any(keyword in text for keyword in self.keywords):
            return Intent.STRUCTURAL_EDIT
        return Intent.PLAIN_QUESTION


class ChatContext(BaseModel):
    """Data the chat prompts embed for the model."""
    file_data: Optional[ParsedFile] = None
    schema_doc: Optional[Schema] = None
    rules: Optional[RuleSet] = None
    attached_file: Optional[ParsedFile] = None

    def to_prompt_json(self) -> str:
        payload: Dict[str, Any] = {
            "fileData": self.file_data.model_dump(mode="json", by_alias=True) if self.file_data else None,
            "schema": self.schema_doc.to_json_dict() if self.schema_doc else None,
            "dbtRules": self.rules.to_json_dict() if self.rules else None,
        }
        return json.dumps(payload)


class ChatReply(BaseModel):
    """What a chat turn produced for the UI."""
    intent: Intent
    message: str
    updated_rules: Optional[RuleSet] = None
    change_log: List[ChangeLogEntry] = Field(default_factory=list)
    last_modified_table: Optional[str] = None
    status: Optional[StatusMessage] = None


def extract_patch(text: str, sentinel: str) -> Optional[PatchRuleSet]:
    """
    Pulls the JSON patch that follows ``sentinel`` out of a chat response.

    Returns:
        None when the sentinel is absent.

    Raises:
        PatchParseError: When the sentinel is present but no valid patch follows it.
    """
    if sentinel not in text:
        return None
    match = re.search(re.escape(sentinel) + r"\s*(\{[\s\S]*\})", text)
    if not match:
        raise PatchParseError("No JSON object found after the rule marker", raw_text=text)
    try:
        return PatchRuleSet.model_validate(json.loads(match.group(1)))
    except json.JSONDecodeError as e:
        raise PatchParseError(f"Invalid JSON: {e}", raw_text=text) from e
    except ValidationError as e:
        raise PatchParseError(f"Invalid rule changes: {e}", raw_text=text) from e


class ChatRouter:
    """
    Answers chat messages, turning rule-edit responses into reconciled rule sets.

    Responses on the edit path are streamed until the patch sentinel shows
    up; from then on the UI only sees ``WORKING_INDICATOR``. The patch itself
    is never shown. Instead the change log becomes the reply.
    """

    def __init__(
        self,
        source_factory: SourceFactory,
        consumer: Optional[StreamConsumer] = None,
        classifier: Optional[IntentClassifier] = None,
        sentinel: Optional[str] = None,
    ):
        self.source_factory = source_factory
        self.consumer = consumer or StreamConsumer()
        self.classifier = classifier or KeywordIntentClassifier()
        self.sentinel = sentinel or settings.patch_sentinel
        self.chat_prompt = ChatPromptTemplate.from_messages([
            ("system", CHAT_SYSTEM_PROMPT),
            MessagesPlaceholder("history"),
            ("human", "{message}"),
        ])
        self.edit_prompt = ChatPromptTemplate.from_messages([
            ("system", RULE_EDIT_SYSTEM_PROMPT),
            ("human", "{message}"),
        ])

    def route(self, message: str, current_rules: Optional[RuleSet]) -> Intent:
        return self.classifier.classify(message, current_rules)

    async def respond(
        self,
        message: str,
        context: ChatContext,
        history: Sequence[BaseMessage] = (),
        on_progress: Optional[ReplyCallback] = None,
    ) -> ChatReply:
        intent = self.route(message, context.rules)
        logger.info(f"Chat message routed as {intent.value}")
        if intent == Intent.STRUCTURAL_EDIT:
            return await self._respond_edit(message, context, on_progress)
        return await self._respond_question(message, context, history, on_progress)

    async def _respond_question(
        self,
        message: str,
        context: ChatContext,
        history: Sequence[BaseMessage],
        on_progress: Optional[ReplyCallback],
    ) -> ChatReply:
        messages = self.chat_prompt.format_messages(
            attachment=self._attachment_note(context),
            context=self._context_note(context),
            history=list(history),
            message=message,
        )
        text = await self.consumer.consume(self.source_factory(messages), on_text=on_progress)
        return ChatReply(intent=Intent.PLAIN_QUESTION, message=text)

    async def _respond_edit(
        self,
        message: str,
        context: ChatContext,
        on_progress: Optional[ReplyCallback],
    ) -> ChatReply:
        messages = self.edit_prompt.format_messages(
            sentinel=self.sentinel,
            context=f"Here's information about the data context: {context.to_prompt_json()}.",
            message=message,
        )

        def on_text(text: str) -> None:
            if on_progress is None:
                return
            on_progress(WORKING_INDICATOR if self.sentinel in text else text)

        text = await self.consumer.consume(self.source_factory(messages), on_text=on_text)

        try:
            patch = extract_patch(text, self.sentinel)
        except PatchParseError as e:
            logger.warning(f"Rule patch could not be parsed: {e.message}")
            return ChatReply(
                intent=Intent.STRUCTURAL_EDIT,
                message=f"Error processing DBT rule changes: {e.message}. Here's the raw response:\n\n{e.raw_text}",
                status=e.to_status(),
            )
        if patch is None:
            return ChatReply(intent=Intent.STRUCTURAL_EDIT, message=text)

        try:
            result = reconcile(context.rules, patch)
        except RulesNotGeneratedError as e:
            logger.warning("Rule patch received before any rules were generated")
            return ChatReply(
                intent=Intent.STRUCTURAL_EDIT,
                message=f"Error: {e.message}",
                status=e.to_status(),
            )

        return ChatReply(
            intent=Intent.STRUCTURAL_EDIT,
            message=format_change_log(result),
            updated_rules=result.updated,
            change_log=result.log,
            last_modified_table=result.last_modified_table,
        )

    @staticmethod
    def _attachment_note(context: ChatContext) -> str:
        if context.attached_file is None:
            return ""
        data = context.attached_file.model_dump_json(by_alias=True)
        return f"The user has attached a new file: {context.attached_file.name}. Here's the data: {data}."

    @staticmethod
    def _context_note(context: ChatContext) -> str:
        if not (context.file_data or context.schema_doc or context.rules):
            return ""
        return f"Here's information about the existing data context: {context.to_prompt_json()}."
