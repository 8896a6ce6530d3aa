from __future__ import annotations

from typing import Any, AsyncIterable, Callable, Optional

from dbtgen.common.errors import StaleResultError
from dbtgen.common.logger import get_logger
from dbtgen.documents.models import Document
from dbtgen.documents.session import DocumentSession
from dbtgen.streaming.consumer import StreamChunk, StreamConsumer

logger = get_logger("document_generator")

DocumentCallback = Callable[[Document], None]
CurrentCheck = Callable[[], bool]


def _always_current() -> bool:
    return True


class DocumentGenerator:
    """
    Runs one generation request: a chunk source, through a stream consumer,
    into a document session.

    Observers receive the session's snapshot after ``begin``, after every
    accepted partial value and once more after finalize. ``is_current`` lets
    the owner retire a request that has been superseded; from then on its
    results are dropped instead of delivered.
    """

    def __init__(self, consumer: Optional[StreamConsumer] = None):
        self.consumer = consumer or StreamConsumer()

    async def run(
        self,
        session: DocumentSession,
        source: AsyncIterable[StreamChunk],
        on_progress: Optional[DocumentCallback] = None,
        is_current: Optional[CurrentCheck] = None,
    ) -> Document:
        """
        Streams ``source`` into ``session`` and finalizes it.

        Raises:
            UpstreamStreamError: If the source fails. The session is not finalized.
            FinalizeError: If the completed text is not a valid document.
            StaleResultError: If the request was superseded before it finished.
        """
        is_current = is_current or _always_current
        emit = on_progress or (lambda _document: None)

        emit(session.begin())

        def on_partial(value: Any) -> None:
            if not is_current():
                logger.debug(f"Dropping partial {session.kind.value} from a superseded request")
                return
            if session.on_stream_progress(value):
                emit(session.current_value())

        full_text = await self.consumer.consume(source, on_progress=on_partial)

        if not is_current():
            logger.warning(f"Discarding {session.kind.value} result from a superseded request")
            raise StaleResultError(f"A newer {session.kind.label} request replaced this one")

        document = session.finalize(full_text)
        emit(document)
        return document
