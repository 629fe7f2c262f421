"""Linear backoff for stage execution."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt_index: int, delay: float) -> float:
    """Wait before retry ``attempt_index`` (1-based): ``delay``, ``2 * delay``, ..."""

    return max(attempt_index, 0) * max(delay, 0.0)


def retry_with_backoff(
    func: Callable[[], T],
    *,
    attempts: int,
    delay: float,
    retry_on: Tuple[Type[BaseException], ...],
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """Call ``func`` up to ``attempts`` times.

    Exceptions matching ``retry_on`` trigger another attempt after a linearly
    growing pause; the last one is re-raised once the budget is spent. Any
    other exception propagates immediately.
    """

    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as exc:
            if attempt == attempts:
                raise
            if on_retry is not None:
                on_retry(attempt, exc)
            wait = backoff_delay(attempt, delay)
            if wait:
                sleep(wait)

    raise AssertionError("unreachable")  # pragma: no cover
