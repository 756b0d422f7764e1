"""Bounded exponential backoff around generation backend calls.

Only transient failures are retried:

- *overloaded*: status 503, or a message mentioning ``overloaded`` / ``503``.
  Waits ``initial_delay * multiplier ** attempt``.
- *rate limited*: status 429, or a message mentioning ``rate limit``.
  Waits twice as long as an overloaded retry.

Every other error propagates on the first failure. There is no jitter, so
the delay sequence is fully deterministic.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from .models import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


class ErrorKind(str, Enum):
    OVERLOADED = "overloaded"
    RATE_LIMITED = "rate_limited"
    FATAL = "fatal"


def _status_of(error: BaseException) -> int | None:
    """Best-effort numeric status from SDK exceptions (``status_code``, ``status``, ``code``)."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def classify_error(error: BaseException) -> ErrorKind:
    """Classify *error* as overloaded, rate limited, or fatal."""
    status = _status_of(error)
    message = str(error)
    lowered = message.lower()

    if status == 503 or "overloaded" in lowered or "503" in message:
        return ErrorKind.OVERLOADED
    if status == 429 or "rate limit" in lowered:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.FATAL


def backoff_delay(kind: ErrorKind, attempt: int, policy: RetryConfig | None = None) -> float:
    """Seconds to wait after the failed *attempt* (zero-based)."""
    policy = policy or RetryConfig()
    delay = policy.initial_delay * (policy.backoff_multiplier ** attempt)
    if kind is ErrorKind.RATE_LIMITED:
        delay *= policy.rate_limit_factor
    return delay


async def with_retry(
    call: Callable[[], Awaitable[T]],
    max_attempts: int | None = None,
    *,
    policy: RetryConfig | None = None,
    sleep: Sleep = asyncio.sleep,
    label: str = "generation call",
) -> T:
    """Await ``call()`` with up to *max_attempts* tries.

    *max_attempts* defaults to ``policy.max_attempts`` (3). *sleep* is
    injectable so tests can record the delay sequence without waiting.
    """
    policy = policy or RetryConfig()
    attempts = max_attempts if max_attempts is not None else policy.max_attempts
    if attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {attempts}")

    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            return await call()
        except Exception as e:
            kind = classify_error(e)
            if kind is ErrorKind.FATAL:
                raise
            last_error = e
            if attempt + 1 >= attempts:
                break
            delay = backoff_delay(kind, attempt, policy)
            logger.warning(
                "%s: %s (attempt %d/%d), retrying in %.1fs",
                label, kind.value.replace("_", " "), attempt + 1, attempts, delay,
            )
            await sleep(delay)

    logger.error("%s: all %d attempts failed", label, attempts)
    assert last_error is not None
    raise last_error
