import json
from typing import Any, AsyncIterator, List, Optional

import pytest

from dbtgen.common.resilience import LLM_BREAKER
from dbtgen.files.models import ParsedFile, Sheet
from dbtgen.streaming.consumer import StreamChunk
from dbtgen.streaming.decoder import DecodeResult


async def _iterate(chunks: List[StreamChunk]) -> AsyncIterator[StreamChunk]:
    for chunk in chunks:
        yield chunk


def cumulative_chunks(text: str, step: int = 7) -> List[StreamChunk]:
    """Splits ``text`` into cumulative snapshots, the way the chat API streams them."""
    return [StreamChunk(content=text[:end]) for end in range(step, len(text) + step, step)]


class ScriptedDecoder:
    """Partial decoder double that replays a fixed list of results and records its inputs."""

    def __init__(self, results: List[DecodeResult]):
        self.results = list(results)
        self.calls: List[str] = []

    def decode(self, text: str) -> DecodeResult:
        self.calls.append(text)
        if self.results:
            return self.results.pop(0)
        return DecodeResult.failure("exhausted")


@pytest.fixture
def make_source():
    """Returns a factory building an async chunk source from chunks or plain strings."""
    def _make(*items: Any, error: Optional[str] = None):
        chunks = [item if isinstance(item, StreamChunk) else StreamChunk(content=item) for item in items]
        if error is not None:
            chunks.append(StreamChunk(error=error))
        return _iterate(chunks)
    return _make


@pytest.fixture
def streamed():
    """Returns a factory streaming a full text as cumulative chunks."""
    def _make(text: str, step: int = 7):
        return _iterate(cumulative_chunks(text, step))
    return _make


@pytest.fixture
def parsed_file():
    return ParsedFile(
        name="dataset-orders.csv",
        type="csv",
        sheets=[
            Sheet(
                name="orders",
                headers=["order_id", "customer_email", "amount"],
                sample_rows=[
                    [1, "a@example.com", 10.5],
                    [2, "b@example.com", None],
                    [3, "tab\there", 7],
                ],
            )
        ],
    )


@pytest.fixture
def schema_json():
    return json.dumps({
        "fileName": "dataset-orders.csv",
        "schemas": [
            {
                "sheetName": "orders",
                "tableName": "orders",
                "description": "Customer orders",
                "tableType": "fact",
                "primaryKey": {"columns": ["order_id"], "type": "simple", "confidence": "high"},
                "columns": [
                    {"name": "order_id", "dataType": "integer", "isPrimaryKey": True},
                    {"name": "customer_email", "dataType": "string", "isPII": True},
                ],
            }
        ],
        "relationships": [],
        "modelingRecommendations": ["Partition orders by date"],
    })


@pytest.fixture
def rules_json():
    return json.dumps({
        "dbtRules": [
            {
                "tableName": "orders",
                "modelSql": "SELECT * FROM {{ seed('orders') }}",
                "tests": [{"column": "order_id", "tests": ["not_null", "unique"]}],
                "materialization": "table",
            }
        ],
        "globalRecommendations": ["use incremental models"],
    })


@pytest.fixture
def reset_llm_breaker():
    LLM_BREAKER.close()
    yield LLM_BREAKER
    LLM_BREAKER.close()


@pytest.fixture
def scripted_decoder():
    """Returns the ``ScriptedDecoder`` class for tests that need a fake partial decoder."""
    return ScriptedDecoder
