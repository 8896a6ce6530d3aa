from __future__ import annotations

import random
import uuid
from typing import AsyncIterable, Callable, Dict, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from pydantic import BaseModel, ConfigDict, Field

from dbtgen.chat.router import ChatContext, ChatReply, ChatRouter, IntentClassifier
from dbtgen.common.errors import (
    DbtgenError,
    ErrorCode,
    SchemaNotGeneratedError,
    StaleResultError,
    StatusMessage,
)
from dbtgen.common.logger import get_logger, request_context
from dbtgen.configs.manager import ConfigManager
from dbtgen.documents.models import Document, DocumentKind, RuleSet, Schema
from dbtgen.documents.session import DocumentSession
from dbtgen.files.models import ParsedFile
from dbtgen.generation.generator import DocumentCallback, DocumentGenerator
from dbtgen.generation.prompt_builder import build_rules_messages, build_schema_messages
from dbtgen.generation.prompts import DEFAULT_RULES_PROMPT, DEFAULT_SCHEMA_PROMPT
from dbtgen.llm.registry import CHAT_AGENT, RULES_AGENT, SCHEMA_AGENT, LLMRegistry
from dbtgen.streaming.consumer import StreamChunk, StreamConsumer
from dbtgen.streaming.sources import llm_stream

logger = get_logger("workspace")

AgentSourceFactory = Callable[[str, Sequence[BaseMessage]], AsyncIterable[StreamChunk]]

AGENT_BY_KIND = {
    DocumentKind.SCHEMA: SCHEMA_AGENT,
    DocumentKind.RULE_SET: RULES_AGENT,
}


class PromptTemplates(BaseModel):
    """Generation templates; ``dbt_rules`` is exposed as ``dbtRules``."""
    model_config = ConfigDict(populate_by_name=True)

    schema_prompt: str = Field(alias="schema")
    dbt_rules: str = Field(alias="dbtRules")


class GenerationResult(BaseModel):
    """Outcome of one generation request as shown to the UI."""
    kind: DocumentKind
    document: Optional[Document] = None
    status: StatusMessage

    @property
    def ok(self) -> bool:
        return not self.status.is_error


class Workspace:
    """
    Explicit state for one user session of the tool.

    Owns the uploaded file, the last finalized Schema and RuleSet, the
    in-flight document sessions, the chat history and any custom prompt
    templates. Nothing here is process-global: every component gets what it
    needs passed in.

    Each document kind carries a revision number. It moves whenever a
    request for that kind begins and whenever a new value is committed, so
    a generation or chat patch that started under an older revision knows
    its result is stale and drops it.
    """

    def __init__(
        self,
        registry: Optional[LLMRegistry] = None,
        source_factory: Optional[AgentSourceFactory] = None,
        consumer: Optional[StreamConsumer] = None,
        classifier: Optional[IntentClassifier] = None,
        sentinel: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        self._registry = registry
        self._source_factory = source_factory or self._llm_source
        self.consumer = consumer or StreamConsumer()
        self.generator = DocumentGenerator(self.consumer)
        self.router = ChatRouter(
            lambda messages: self._source_factory(CHAT_AGENT, messages),
            consumer=self.consumer,
            classifier=classifier,
            sentinel=sentinel,
        )
        self.rng = rng or random.Random()

        self.file_data: Optional[ParsedFile] = None
        self.history: List[BaseMessage] = []
        self.sessions: Dict[DocumentKind, DocumentSession] = {}
        self._documents: Dict[DocumentKind, Optional[Document]] = {kind: None for kind in DocumentKind}
        self._revisions: Dict[DocumentKind, int] = {kind: 0 for kind in DocumentKind}
        self._custom_prompts: Dict[DocumentKind, Optional[str]] = {kind: None for kind in DocumentKind}

    # -- documents --------------------------------------------------------

    @property
    def schema(self) -> Optional[Schema]:
        """The last finalized Schema."""
        return self._documents[DocumentKind.SCHEMA]

    @property
    def rules(self) -> Optional[RuleSet]:
        """The last finalized RuleSet, including committed chat edits."""
        return self._documents[DocumentKind.RULE_SET]

    def current_document(self, kind: DocumentKind) -> Optional[Document]:
        """The value observers should render: the in-flight snapshot if any, else the last finalized one."""
        if self._in_flight(kind):
            return self.sessions[kind].current_value()
        return self._documents[kind]

    def revision(self, kind: DocumentKind) -> int:
        return self._revisions[kind]

    def _bump(self, kind: DocumentKind) -> int:
        self._revisions[kind] += 1
        return self._revisions[kind]

    def _commit(self, kind: DocumentKind, document: Document) -> None:
        self._documents[kind] = document
        self._bump(kind)

    def _in_flight(self, kind: DocumentKind) -> bool:
        session = self.sessions.get(kind)
        return session is not None and not session.is_finalized

    # -- generation -------------------------------------------------------

    async def generate_schema(
        self,
        parsed_file: ParsedFile,
        on_progress: Optional[DocumentCallback] = None,
    ) -> GenerationResult:
        """Infers a Schema for ``parsed_file``, streaming snapshots to ``on_progress``."""
        self.file_data = parsed_file
        with request_context(self._new_request_id()):
            messages = build_schema_messages(
                parsed_file,
                template=self._custom_prompts[DocumentKind.SCHEMA],
                rng=self.rng,
            )
            return await self._generate(DocumentKind.SCHEMA, messages, on_progress)

    async def generate_rules(self, on_progress: Optional[DocumentCallback] = None) -> GenerationResult:
        """Generates a RuleSet from the last finalized Schema."""
        with request_context(self._new_request_id()):
            if self.schema is None:
                return self._failed(
                    DocumentKind.RULE_SET,
                    SchemaNotGeneratedError("No schema found. Please generate a schema first."),
                )
            messages = build_rules_messages(self.schema, template=self._custom_prompts[DocumentKind.RULE_SET])
            return await self._generate(DocumentKind.RULE_SET, messages, on_progress)

    async def _generate(
        self,
        kind: DocumentKind,
        messages: Sequence[BaseMessage],
        on_progress: Optional[DocumentCallback],
    ) -> GenerationResult:
        revision = self._bump(kind)
        session = DocumentSession(kind)
        self.sessions[kind] = session
        logger.info(f"Starting {kind.value} generation (revision {revision})")

        try:
            source = self._source_factory(AGENT_BY_KIND[kind], messages)
            document = await self.generator.run(
                session,
                source,
                on_progress=on_progress,
                is_current=lambda: self._revisions[kind] == revision,
            )
        except DbtgenError as e:
            if self.sessions.get(kind) is session:
                del self.sessions[kind]
            return self._failed(kind, e)

        self._commit(kind, document)
        return GenerationResult(
            kind=kind,
            document=document,
            status=StatusMessage(message=f"{kind.label} generated successfully"),
        )

    def _failed(self, kind: DocumentKind, error: DbtgenError) -> GenerationResult:
        logger.error(f"{kind.label} generation failed: [{error.error_code.value}] {error.message}")
        status = error.to_status()
        if error.error_code != ErrorCode.STALE_RESULT:
            status = status.model_copy(update={"message": f"{kind.label} generation failed: {error.message}"})
        return GenerationResult(kind=kind, document=self._documents[kind], status=status)

    # -- chat -------------------------------------------------------------

    async def chat(
        self,
        message: str,
        on_progress: Optional[Callable[[str], None]] = None,
        attached_file: Optional[ParsedFile] = None,
    ) -> ChatReply:
        """
        Answers a chat message, applying any rule edit it produces.

        A rule edit is only committed if the RuleSet revision has not moved
        since the turn started and no RuleSet generation is in flight;
        otherwise it is discarded and the reply says so.
        """
        with request_context(self._new_request_id()):
            revision = self._revisions[DocumentKind.RULE_SET]
            context = ChatContext(
                file_data=self.file_data,
                schema_doc=self.schema,
                rules=self.rules,
                attached_file=attached_file,
            )
            intent = self.router.route(message, self.rules)

            try:
                reply = await self.router.respond(
                    message, context, history=list(self.history), on_progress=on_progress
                )
            except DbtgenError as e:
                logger.error(f"Chat response failed: [{e.error_code.value}] {e.message}")
                status = e.to_status()
                return ChatReply(
                    intent=intent,
                    message=f"Chat response failed: {e.message}",
                    status=status,
                )

            if reply.updated_rules is not None:
                if self._revisions[DocumentKind.RULE_SET] != revision or self._in_flight(DocumentKind.RULE_SET):
                    reply = self._discard_stale_patch(reply)
                else:
                    self._commit(DocumentKind.RULE_SET, reply.updated_rules)

            self.history.append(HumanMessage(content=message))
            self.history.append(AIMessage(content=reply.message))
            return reply

    @staticmethod
    def _discard_stale_patch(reply: ChatReply) -> ChatReply:
        error = StaleResultError(
            "The DBT rules changed or are being regenerated, so this edit was not applied. Please try again."
        )
        logger.warning("Discarding chat rule edit: the rule set changed or is being regenerated")
        return reply.model_copy(update={
            "message": error.message,
            "updated_rules": None,
            "change_log": [],
            "last_modified_table": None,
            "status": error.to_status(),
        })

    def reset_chat(self) -> None:
        self.history = []

    # -- prompts ----------------------------------------------------------

    def set_custom_prompts(self, schema: Optional[str] = None, dbt_rules: Optional[str] = None) -> None:
        """Overrides the generation templates. ``None`` leaves a template unchanged."""
        if schema is not None:
            self._custom_prompts[DocumentKind.SCHEMA] = schema
        if dbt_rules is not None:
            self._custom_prompts[DocumentKind.RULE_SET] = dbt_rules

    def current_prompts(self) -> PromptTemplates:
        return PromptTemplates(
            schema_prompt=self._custom_prompts[DocumentKind.SCHEMA] or DEFAULT_SCHEMA_PROMPT,
            dbt_rules=self._custom_prompts[DocumentKind.RULE_SET] or DEFAULT_RULES_PROMPT,
        )

    def reset_prompts(self) -> None:
        self._custom_prompts = {kind: None for kind in DocumentKind}

    # -- plumbing ---------------------------------------------------------

    @staticmethod
    def _new_request_id() -> str:
        return uuid.uuid4().hex[:12]

    @property
    def registry(self) -> LLMRegistry:
        if self._registry is None:
            self._registry = LLMRegistry(ConfigManager().load_llm())
        return self._registry

    def _llm_source(self, agent: str, messages: Sequence[BaseMessage]) -> AsyncIterable[StreamChunk]:
        try:
            llm = self.registry.get_llm(agent) if agent == CHAT_AGENT else self.registry.json_llm(agent)
        except (RuntimeError, ValueError, FileNotFoundError) as e:
            raise DbtgenError(f"LLM is not configured: {e}", error_code=ErrorCode.MISSING_LLM) from e
        return llm_stream(llm, messages)
