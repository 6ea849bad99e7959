"""Retry utilities for storage operations.

Provides exponential backoff retry logic for transient network errors
when communicating with Qdrant. Failures that survive the retries are
re-raised as StorageError so callers see one storage failure type.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from storywire.exceptions import StorageError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

QDRANT_ERRORS = (httpx.HTTPError, ResponseHandlingException, UnexpectedResponse)


def is_transient_qdrant_error(exc: BaseException) -> bool:
    """Decide whether a Qdrant failure is worth retrying.

    Connection failures, timeouts and 5xx responses are transient.
    4xx responses are not: the request itself is wrong.
    """
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, ResponseHandlingException)):
        return True
    if isinstance(exc, UnexpectedResponse):
        return exc.status_code is not None and exc.status_code >= 500
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts with context."""
    logger.warning(
        "Retrying Qdrant operation %s (attempt %d): %s",
        retry_state.fn.__name__ if retry_state.fn else "unknown",
        retry_state.attempt_number,
        retry_state.outcome.exception() if retry_state.outcome else None,
    )


_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception(is_transient_qdrant_error),
    before_sleep=_log_retry,
    reraise=True,
)


def qdrant_retry(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Retry transient Qdrant errors, then wrap what remains in StorageError."""
    retrying = _retry_transient(func)

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await retrying(*args, **kwargs)
        except QDRANT_ERRORS as e:
            logger.error("Qdrant operation %s failed: %s", func.__name__, e)
            raise StorageError(f"Qdrant operation {func.__name__} failed: {e}") from e

    return wrapper
