import logging
import json
import contextvars
from contextlib import contextmanager
from typing import IO, Any, Dict, Iterator, Optional

_request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

# Attributes every LogRecord has; anything else on a record came in through ``extra=``.
_RECORD_ATTRS = set(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "request_id",
}

TEXT_FORMAT = "%(asctime)s - [%(request_id)s] - %(name)s - %(levelname)s - %(message)s"


class RequestContextFilter(logging.Filter):
    """Stamps each record with the id of the generation or chat turn it belongs to."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx.get()
        return True


@contextmanager
def request_context(request_id: str) -> Iterator[str]:
    """Binds ``request_id`` to every log line emitted inside the block, including awaited code."""
    token = _request_id_ctx.set(request_id)
    try:
        yield request_id
    finally:
        _request_id_ctx.reset(token)


def current_request_id() -> Optional[str]:
    return _request_id_ctx.get()


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with ``extra=`` fields and exceptions inlined."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False, stream: Optional[IO[str]] = None):
    """Installs a single root handler for the tool.

    Args:
        level (str): Root log level.
        json_format (bool): Emit JSON lines instead of ``TEXT_FORMAT``.
        stream: Where to write; defaults to stderr.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(handler)

    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Returns the ``dbtgen.<name>`` logger."""
    return logging.getLogger(f"dbtgen.{name}")
