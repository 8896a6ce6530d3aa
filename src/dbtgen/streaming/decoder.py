from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from json_repair import repair_json


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of a best-effort decode: either ``ok`` with a value, or a failure."""

    ok: bool
    value: Any = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: Any) -> "DecodeResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "DecodeResult":
        return cls(ok=False, reason=reason)


class PartialDecoder(Protocol):
    """Best-effort decoder for an arbitrary prefix of a JSON text.

    Implementations must be pure and must never raise.
    """

    def decode(self, text: str) -> DecodeResult:
        ...


class RepairingDecoder:
    """
    Partial decoder backed by ``json_repair``.

    Complete JSON goes through the strict parser unchanged; an incomplete
    prefix is closed off by ``repair_json`` (open strings, arrays and objects
    are terminated) and parsed again. Shape checks are left to the caller, so
    a bare number decodes like any other value.
    """

    def decode(self, text: str) -> DecodeResult:
        if not text or not text.strip():
            return DecodeResult.failure("empty input")
        try:
            return DecodeResult.success(json.loads(text))
        except (json.JSONDecodeError, TypeError):
            pass
        try:
            repaired = repair_json(text)
            value = json.loads(repaired)
        except Exception as e:  # json_repair raises assorted errors on odd input
            return DecodeResult.failure(f"unrepairable prefix: {e}")
        if value == "":
            return DecodeResult.failure("nothing decodable yet")
        return DecodeResult.success(value)
