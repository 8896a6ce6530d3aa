from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterable, Callable, Optional

from dbtgen.common.errors import DbtgenError, UpstreamStreamError
from dbtgen.common.logger import get_logger
from .decoder import PartialDecoder, RepairingDecoder

logger = get_logger("stream_consumer")

ProgressCallback = Callable[[Any], None]
TextCallback = Callable[[str], None]


@dataclass(frozen=True)
class StreamChunk:
    """One item from a generation source: text so far, or an upstream error."""

    content: Optional[str] = None
    error: Optional[str] = None


def completeness(value: Any) -> int:
    """Counts top-level list items, the measure progress must never go below."""
    if isinstance(value, dict):
        return sum(len(v) for v in value.values() if isinstance(v, list))
    if isinstance(value, list):
        return len(value)
    return 0


class StreamConsumer:
    """
    Drives a chunk source to completion, decoding as it goes.

    Every non-empty chunk grows the buffer. By default chunks are cumulative
    snapshots of the whole response; with ``cumulative=False`` they are
    deltas appended to the buffer. After each chunk the buffer is run through
    the partial decoder and ``on_progress`` receives the decoded value when it
    adds information over the last value forwarded.

    The consumer does not decide whether the final text is a valid document;
    it only returns it.
    """

    def __init__(self, decoder: Optional[PartialDecoder] = None, cumulative: bool = True):
        self.decoder = decoder or RepairingDecoder()
        self.cumulative = cumulative

    async def consume(
        self,
        source: AsyncIterable[StreamChunk],
        on_progress: Optional[ProgressCallback] = None,
        on_text: Optional[TextCallback] = None,
    ) -> str:
        """
        Consumes ``source`` and returns the full accumulated text.

        Args:
            source: Async iterable of ``StreamChunk`` items.
            on_progress: Receives each improved partial decode, in order.
            on_text: Receives the accumulated raw text after every chunk.

        Raises:
            UpstreamStreamError: On an error item or a failing source. No
                further callbacks are made.
        """
        buffer = ""
        last_value: Any = None
        last_completeness = -1
        chunk_count = 0

        iterator = source.__aiter__()
        while True:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except DbtgenError:
                raise
            except Exception as e:
                logger.error(f"Generation stream failed after {chunk_count} chunks: {e}")
                raise UpstreamStreamError(f"LLM API error: {e}") from e

            if chunk.error:
                logger.error(f"Generation stream reported an error after {chunk_count} chunks: {chunk.error}")
                raise UpstreamStreamError(f"LLM API error: {chunk.error}")
            if not chunk.content:
                continue

            if self.cumulative:
                if not chunk.content.startswith(buffer):
                    logger.warning("Dropping cumulative chunk that does not extend the buffer")
                    continue
                buffer = chunk.content
            else:
                buffer += chunk.content
            chunk_count += 1

            if on_text is not None:
                on_text(buffer)
            if on_progress is None:
                continue

            result = self.decoder.decode(buffer)
            if not result.ok:
                logger.debug(f"Chunk {chunk_count}: partial decode miss ({result.reason})")
                continue
            score = completeness(result.value)
            if score < last_completeness or result.value == last_value:
                continue
            last_value = result.value
            last_completeness = score
            on_progress(result.value)

        logger.debug(f"Stream complete: {chunk_count} chunks, {len(buffer)} chars")
        return buffer
