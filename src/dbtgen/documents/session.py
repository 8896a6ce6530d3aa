from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError

from dbtgen.common.errors import ErrorCode, FinalizeError
from dbtgen.common.logger import get_logger
from .models import DOCUMENT_MODELS, Document, DocumentKind, RuleSet, empty_document

logger = get_logger("document_session")


class DocumentState(str, Enum):
    EMPTY = "empty"
    STREAMING = "streaming"
    FINALIZED = "finalized"


def coerce_document(kind: DocumentKind, value: Any) -> Document:
    """Validates a decoded JSON value into a document of ``kind``.

    Missing list fields become empty lists. Raises ``ValidationError`` for
    values of the wrong shape (including non-objects).
    """
    return DOCUMENT_MODELS[kind].model_validate(value)


def _with_default_summary(rule_set: RuleSet) -> RuleSet:
    if rule_set.summary or not rule_set.global_recommendations:
        return rule_set
    return rule_set.model_copy(update={"summary": "\n\n".join(rule_set.global_recommendations)})


class DocumentSession:
    """
    Owns the single document of one generation request.

    The current value is readable at any time and is always a well-formed,
    iterable document once ``begin`` has been called. Partial values that
    cannot be coerced are treated as "not enough data yet"; a final payload
    that cannot be parsed is a real failure and is raised to the caller.
    """

    def __init__(self, kind: DocumentKind):
        self.kind = kind
        self.state = DocumentState.EMPTY
        self.value: Optional[Document] = None

    def begin(self) -> Document:
        """Resets to Empty with an empty-but-well-formed document."""
        self.state = DocumentState.EMPTY
        self.value = empty_document(self.kind)
        return self.value

    def on_stream_progress(self, partial_value: Any) -> bool:
        """Replaces the value with a coerced partial decode.

        Returns:
            True when the value was accepted, False when it was skipped.
        """
        if self.state == DocumentState.FINALIZED:
            logger.debug(f"Ignoring partial {self.kind.value} after finalize")
            return False
        try:
            coerced = coerce_document(self.kind, partial_value)
        except ValidationError as e:
            logger.debug(f"Partial {self.kind.value} not usable yet: {e.error_count()} validation errors")
            return False
        self.value = coerced
        self.state = DocumentState.STREAMING
        return True

    def finalize(self, full_text: str) -> Document:
        """Strictly parses the completed stream and moves to Finalized.

        Raises:
            FinalizeError: If the text is not valid JSON or not a valid document.
                The session stays Streaming with its last streamed value.
        """
        try:
            raw = json.loads(full_text)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Finalize failed for {self.kind.value}: {e}")
            self.state = DocumentState.STREAMING
            raise FinalizeError(f"{self.kind.label} generation returned invalid JSON: {e}") from e

        try:
            document = coerce_document(self.kind, raw)
        except ValidationError as e:
            logger.warning(f"Finalize failed for {self.kind.value}: {e}")
            self.state = DocumentState.STREAMING
            raise FinalizeError(
                f"{self.kind.label} generation returned an unexpected shape: {e}",
                error_code=ErrorCode.DOCUMENT_SHAPE_INVALID,
            ) from e

        if isinstance(document, RuleSet):
            document = _with_default_summary(document)

        self.value = document
        self.state = DocumentState.FINALIZED
        logger.info(f"{self.kind.label} finalized")
        return document

    def current_value(self) -> Optional[Document]:
        return self.value

    @property
    def is_finalized(self) -> bool:
        return self.state == DocumentState.FINALIZED
