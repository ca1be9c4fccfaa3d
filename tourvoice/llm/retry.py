"""Exponential-backoff retry helper shared by provider and storage calls."""

from __future__ import annotations

from time import sleep
from typing import Callable, TypeVar

_Result = TypeVar("_Result")


def _always_retry(_exc: Exception) -> bool:
    """Default retry predicate that treats every exception as transient."""

    return True


def with_retry(
    fn: Callable[[], _Result],
    *,
    max_attempts: int,
    base_delay_seconds: float,
    should_retry: Callable[[Exception], bool] = _always_retry,
    sleeper: Callable[[float], None] = sleep,
    on_retry: Callable[[int, Exception], None] | None = None,
) -> _Result:
    """Call `fn` until it succeeds or `max_attempts` is exhausted.

    The delay before retry `n` (1-based) is `base_delay_seconds * 2 ** (n - 1)`.
    Exceptions rejected by `should_retry` and the last attempt's exception are
    re-raised unchanged.

    Args:
        fn: Zero-argument callable to invoke.
        max_attempts: Total attempts including the first call; must be >= 1.
        base_delay_seconds: Initial backoff delay.
        should_retry: Predicate deciding whether an exception is transient.
        sleeper: Sleep function, injectable for tests.
        on_retry: Optional hook called with the retry number and the exception.
    """

    if max_attempts < 1:
        raise ValueError("`max_attempts` must be at least 1.")

    attempt = 1
    while True:
        try:
            return fn()
        except Exception as exc:
            if attempt >= max_attempts or not should_retry(exc):
                raise
            if on_retry is not None:
                on_retry(attempt, exc)
            delay = max(0.0, base_delay_seconds) * (2 ** (attempt - 1))
            if delay > 0.0:
                sleeper(delay)
            attempt += 1
