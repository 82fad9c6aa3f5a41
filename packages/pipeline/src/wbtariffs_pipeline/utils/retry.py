"""
utils/retry.py — Exponential-backoff retry decorators.

Uses tenacity under the hood. Logs each retry with structlog so transient
failures are observable. Retries belong to the external-service clients
(WB API, Google Sheets); the sync orchestrator itself never retries.

Usage:
    from wbtariffs_pipeline.utils.retry import with_retry, with_retry_sync

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def fetch() -> dict: ...

    @with_retry_sync(retry_on=TransientSheetsError)
    def execute_request(request): ...
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])
S = TypeVar("S", bound=Callable[..., Any])


def _log_before_sleep(fn_name: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        log.warning(
            "retry_attempt",
            function=fn_name,
            attempt=state.attempt_number,
            max_attempts=max_attempts,
            delay_s=round(state.next_action.sleep, 2) if state.next_action else None,
            last_error=str(exc) if exc else None,
        )

    return before_sleep


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Decorator that retries an async function with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay.
    The last exception is re-raised unchanged once attempts are exhausted.

    Args:
        max_attempts: Total attempts before raising.
        base_delay:   Initial delay in seconds.
        max_delay:    Maximum delay cap in seconds.
        retry_on:     Exception type(s) that trigger a retry.
    """

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception_type(retry_on),
                before_sleep=_log_before_sleep(fn.__qualname__, max_attempts),
                reraise=True,
            )
            return await retrying(fn, *args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def with_retry_sync(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[S], S]:
    """
    Same as with_retry but for blocking functions (run in worker threads).
    """

    def decorator(fn: S) -> S:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            retrying = Retrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception_type(retry_on),
                before_sleep=_log_before_sleep(fn.__qualname__, max_attempts),
                reraise=True,
            )
            return retrying(fn, *args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
