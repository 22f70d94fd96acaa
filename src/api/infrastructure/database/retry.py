"""Bounded retry for single storage operations.

Only infrastructure failures (lost connections, refused connects, pool or
statement timeouts) are retried. Logical errors such as constraint
violations propagate on the first attempt.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import exc as sa_exc

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.TimeoutError,
    OSError,  # includes ConnectionRefusedError and builtin TimeoutError
)


def is_transient_error(error: BaseException) -> bool:
    """Return True if the error is worth retrying.

    Args:
        error: The exception raised by a storage call.
    """
    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return True
    return isinstance(error, TRANSIENT_ERRORS)


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff_seconds: float,
    timeout_seconds: float | None = None,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """Run an async operation, retrying transient failures a bounded number of times.

    Each attempt is individually bounded by ``timeout_seconds``. A timed-out
    attempt counts as transient.

    Args:
        operation: Zero-arg callable producing a fresh awaitable per attempt.
        attempts: Maximum number of attempts (>= 1).
        backoff_seconds: Linear backoff unit; attempt N waits N * backoff.
        timeout_seconds: Optional per-attempt timeout.
        on_retry: Called with (attempt_number, error) before each retry.

    Returns:
        The operation's result.

    Raises:
        The last error once attempts are exhausted, or the first
        non-transient error.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            if timeout_seconds is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout_seconds)
        except Exception as e:
            if attempt >= attempts or not is_transient_error(e):
                raise
            if on_retry is not None:
                on_retry(attempt, e)
            await asyncio.sleep(backoff_seconds * attempt)

    raise AssertionError("unreachable")  # pragma: no cover
