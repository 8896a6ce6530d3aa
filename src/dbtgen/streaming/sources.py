from __future__ import annotations

from typing import Any, AsyncIterator, Optional, Sequence

import pybreaker
from langchain_core.messages import BaseMessage
from langchain_core.runnables import Runnable

from dbtgen.common.errors import ErrorCode, UpstreamStreamError
from dbtgen.common.logger import get_logger
from dbtgen.common.resilience import LLM_BREAKER, ensure_available, record_outcome
from .consumer import StreamChunk

logger = get_logger("stream_sources")


def chunk_text(message_chunk: Any) -> str:
    """Extracts the text delta from a streamed message chunk."""
    content = getattr(message_chunk, "content", message_chunk)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


async def llm_stream(
    llm: Runnable,
    messages: Sequence[BaseMessage],
    breaker: Optional[pybreaker.CircuitBreaker] = None,
) -> AsyncIterator[StreamChunk]:
    """
    Streams a chat model response as cumulative ``StreamChunk`` snapshots.

    Provider failures are reported as a trailing error chunk rather than
    raised, matching the ``{content} | {error}`` source contract.

    Raises:
        UpstreamStreamError: With ``SERVICE_UNAVAILABLE`` while the breaker is open.
    """
    breaker = breaker or LLM_BREAKER
    try:
        ensure_available(breaker)
    except pybreaker.CircuitBreakerError as e:
        raise UpstreamStreamError(
            f"LLM service unavailable (Circuit Breaker Open): {e}",
            error_code=ErrorCode.SERVICE_UNAVAILABLE,
        ) from e

    text = ""
    try:
        async for message_chunk in llm.astream(list(messages)):
            delta = chunk_text(message_chunk)
            if not delta:
                continue
            text += delta
            yield StreamChunk(content=text)
    except Exception as e:
        logger.error(f"LLM stream failed: {type(e).__name__}: {e}")
        record_outcome(breaker, e)
        yield StreamChunk(error=f"{type(e).__name__}: {e}")
        return
    record_outcome(breaker)
