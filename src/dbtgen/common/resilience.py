"""
Resilience Module: Circuit Breaker around LLM streaming.

Streaming calls are async iterators, so the breaker cannot wrap them the way
``CircuitBreaker.call`` wraps a plain function. Instead the stream source asks
the breaker for permission before opening a stream and reports the outcome
once the stream has ended.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Type

import pybreaker
from openai import AuthenticationError, BadRequestError, RateLimitError

from dbtgen.common.logger import get_logger
from dbtgen.common.settings import settings

logger = get_logger("resilience")


class ObservabilityListener(pybreaker.CircuitBreakerListener):
    """Listener to export circuit breaker state changes and failures to logs."""

    def state_change(self, cb, old_state, new_state):
        old_name = old_state.name if old_state else None
        logger.warning(
            f"Circuit Breaker '{cb.name}' changed state: {old_name} -> {new_state.name}"
        )

    def failure(self, cb, exc):
        logger.error(
            f"Circuit Breaker '{cb.name}' recorded failure: {type(exc).__name__}: {exc}"
        )


def create_breaker(
    name: str,
    fail_max: int = 5,
    reset_timeout: int = 60,
    exclude: Optional[List[Type[Exception]]] = None
) -> pybreaker.CircuitBreaker:
    """Factory to create a configured Circuit Breaker."""
    return pybreaker.CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=name,
        listeners=[ObservabilityListener()],
        exclude=exclude or []
    )


def _noop() -> None:
    return None


def _reraise(exc: BaseException) -> Any:
    raise exc


def ensure_available(breaker: pybreaker.CircuitBreaker) -> None:
    """Raises ``pybreaker.CircuitBreakerError`` while the breaker is open.

    Once the reset timeout has elapsed the breaker moves to half-open and the
    request goes through as the trial; ``record_outcome`` then closes or
    reopens it depending on how the stream ended.
    """
    if breaker.current_state != pybreaker.STATE_OPEN:
        return
    opened_at = breaker._state_storage.opened_at
    if opened_at and datetime.now(timezone.utc) < opened_at + timedelta(seconds=breaker.reset_timeout):
        raise pybreaker.CircuitBreakerError("Timeout not elapsed yet, circuit breaker still open")
    breaker.half_open()


def record_outcome(breaker: pybreaker.CircuitBreaker, exc: Optional[BaseException] = None) -> None:
    """Reports a finished stream to the breaker without re-raising its error."""
    try:
        if exc is None:
            breaker.call(_noop)
        else:
            breaker.call(_reraise, exc)
    except pybreaker.CircuitBreakerError:
        # Tripped by this failure or already open; the next request fails fast.
        pass
    except Exception as reported:
        # The caller reports the original failure itself.
        if reported is not exc:
            raise


# Rate limits and auth failures are soft failures; they do not trip the breaker.
_llm_excludes: List[Type[Exception]] = [RateLimitError, AuthenticationError, BadRequestError]

LLM_BREAKER = create_breaker(
    name="LLM_BREAKER",
    fail_max=settings.llm_breaker_fail_max,
    reset_timeout=settings.llm_breaker_reset_sec,
    exclude=_llm_excludes
)
