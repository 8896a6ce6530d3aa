from .decoder import DecodeResult, PartialDecoder, RepairingDecoder
from .consumer import StreamChunk, StreamConsumer, completeness
from .sources import llm_stream
