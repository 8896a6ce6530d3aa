# dbtgen package

from .workspace import GenerationResult, PromptTemplates, Workspace

from .chat import ChatContext, ChatReply, ChatRouter, Intent, KeywordIntentClassifier, extract_patch
from .documents import DocumentSession, DocumentState, RuleSet, Schema, rules_summary
from .files import ParsedFile, Sheet
from .reconcile import PatchRuleSet, format_change_log, reconcile
from .streaming import RepairingDecoder, StreamChunk, StreamConsumer

from .common.errors import DbtgenError, ErrorCode, ErrorSeverity, StatusMessage

__all__ = [
    "Workspace",
    "GenerationResult",
    "PromptTemplates",
    "ChatContext",
    "ChatReply",
    "ChatRouter",
    "Intent",
    "KeywordIntentClassifier",
    "extract_patch",
    "DocumentSession",
    "DocumentState",
    "RuleSet",
    "Schema",
    "rules_summary",
    "ParsedFile",
    "Sheet",
    "PatchRuleSet",
    "format_change_log",
    "reconcile",
    "RepairingDecoder",
    "StreamChunk",
    "StreamConsumer",
    "DbtgenError",
    "ErrorCode",
    "ErrorSeverity",
    "StatusMessage",
]
