"""Exponential-backoff retries for model calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from . import errors as errors_

logger = logging.getLogger(__name__)


class RetryFunction(Protocol):
    async def __call__[T](self, fn: Callable[[], Awaitable[T]]) -> T: ...


def is_abort_error(error: BaseException) -> bool:
    return isinstance(
        error, (errors_.AbortError, asyncio.CancelledError, TimeoutError)
    )


def retry_with_exponential_backoff(
    *,
    max_retries: int = 2,
    initial_delay_ms: float = 2000,
    backoff_factor: float = 2,
) -> RetryFunction:
    """Build a retry function for fallible async operations.

    Only ``APICallError`` instances flagged ``is_retryable`` are retried.
    A non-retryable failure on the first attempt is re-raised unwrapped so
    callers keep the original error type; any later failure is reported as
    a ``RetryError`` carrying every error seen so far.
    """

    async def retry[T](fn: Callable[[], Awaitable[T]]) -> T:
        return await _retry(
            fn,
            max_retries=max_retries,
            delay_ms=initial_delay_ms,
            backoff_factor=backoff_factor,
            errors=[],
        )

    return retry


async def _retry[T](
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    delay_ms: float,
    backoff_factor: float,
    errors: list[BaseException],
) -> T:
    try:
        return await fn()
    except Exception as error:
        if is_abort_error(error) or max_retries == 0:
            raise

        message = errors_.get_error_message(error)
        new_errors = [*errors, error]
        try_number = len(new_errors)

        if try_number > max_retries:
            raise errors_.RetryError(
                f"Failed after {try_number} attempts. Last error: {message}",
                reason="maxRetriesExceeded",
                errors=new_errors,
            ) from error

        if isinstance(error, errors_.APICallError) and error.is_retryable:
            logger.warning(
                "Retryable error (attempt %d/%d), waiting %.0fms: %s",
                try_number,
                max_retries,
                delay_ms,
                message,
            )
            await asyncio.sleep(delay_ms / 1000)
            return await _retry(
                fn,
                max_retries=max_retries,
                delay_ms=backoff_factor * delay_ms,
                backoff_factor=backoff_factor,
                errors=new_errors,
            )

        if try_number == 1:
            raise

        raise errors_.RetryError(
            f"Failed after {try_number} attempts with non-retryable error: '{message}'",
            reason="errorNotRetryable",
            errors=new_errors,
        ) from error


def prepare_retries(
    max_retries: int | None,
) -> RetryFunction:
    """Validate the ``max_retries`` call setting and build the executor."""
    if max_retries is not None:
        if isinstance(max_retries, bool) or not isinstance(max_retries, int):
            raise errors_.InvalidArgumentError(
                argument="max_retries",
                message="max_retries must be an integer",
                value=max_retries,
            )
        if max_retries < 0:
            raise errors_.InvalidArgumentError(
                argument="max_retries",
                message="max_retries must be >= 0",
                value=max_retries,
            )
    return retry_with_exponential_backoff(
        max_retries=2 if max_retries is None else max_retries
    )
