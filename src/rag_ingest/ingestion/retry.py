"""Retry combinator shared by the fetch layer and the embed/upsert layer.

The two layers use different policies on purpose: HTTP throttling is
answered with exponential backoff, while flaky service calls are retried
a few times with a short fixed pause.

Usage::

    policy = RetryPolicy.fixed(max_attempts=3, delay=5.0)
    vector = policy.call(lambda: embedder.embed(text), label="embed spells/fireball")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from rag_ingest.exceptions import RetryError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _always(exc: Exception) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an operation and how long to wait in between.

    Parameters
    ----------
    max_attempts:
        Total number of attempts, the first one included.
    base_delay:
        Seconds to wait before the second attempt.
    exponential:
        When ``True`` the wait before attempt ``n + 1`` is
        ``base_delay * 2 ** n`` (``n`` starting at 0); otherwise it is
        always ``base_delay``.
    is_retryable:
        Predicate deciding whether an exception deserves another attempt.
        Exceptions it rejects propagate unchanged.
    """

    max_attempts: int
    base_delay: float
    exponential: bool = False
    is_retryable: Callable[[Exception], bool] = field(default=_always, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    @classmethod
    def fixed(
        cls,
        max_attempts: int,
        delay: float,
        is_retryable: Callable[[Exception], bool] = _always,
    ) -> RetryPolicy:
        return cls(max_attempts, delay, exponential=False, is_retryable=is_retryable)

    @classmethod
    def exponential_backoff(
        cls,
        max_attempts: int,
        base_delay: float,
        is_retryable: Callable[[Exception], bool] = _always,
    ) -> RetryPolicy:
        return cls(max_attempts, base_delay, exponential=True, is_retryable=is_retryable)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the zero-based *attempt* failed."""
        if self.exponential:
            return self.base_delay * (2 ** attempt)
        return self.base_delay

    def call(self, fn: Callable[[], T], *, label: str = "operation") -> T:
        """Run *fn* until it succeeds or the attempt budget is spent.

        Raises
        ------
        RetryError
            After ``max_attempts`` retryable failures. No further attempt
            is made once it is raised.
        """
        last_exc: Exception | None = None
        for attempt in range(self.max_attempts):
            try:
                return fn()
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                last_exc = exc
                if attempt + 1 < self.max_attempts:
                    wait = self.delay_for(attempt)
                    logger.warning(
                        "Retry %d/%d for %s (wait %.1fs): %s",
                        attempt + 1, self.max_attempts - 1, label, wait, exc,
                    )
                    time.sleep(wait)

        assert last_exc is not None
        raise RetryError(label, self.max_attempts, last_exc) from last_exc
