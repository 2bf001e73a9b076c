"""Bounded retries for transient store failures."""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import get_settings
from app.errors import StoreUnavailableError, TransientStoreError

logger = structlog.get_logger("loveconnect.retry")

T = TypeVar("T")


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    *,
    label: str,
) -> T:
    """Run ``operation`` retrying only on ``TransientStoreError``.

    Uses exponential backoff capped at ``STORE_RETRY_MAX_WAIT`` seconds and
    at most ``STORE_RETRY_ATTEMPTS`` attempts.  Exhaustion surfaces as a
    generic ``StoreUnavailableError``; every other error propagates
    unchanged on the first occurrence.
    """
    settings = get_settings()

    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TransientStoreError),
            stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=0.05,
                max=settings.STORE_RETRY_MAX_WAIT,
            ),
        ):
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                if attempt_number > 1:
                    logger.warning(
                        "store_retry_attempt",
                        operation=label,
                        attempt_number=attempt_number,
                    )
                return await operation()
    except RetryError as retry_err:
        logger.error(
            "store_retry_exhausted",
            operation=label,
            attempts=settings.STORE_RETRY_ATTEMPTS,
            last_error=str(retry_err.last_attempt.exception()),
        )
        raise StoreUnavailableError() from retry_err.last_attempt.exception()

    raise StoreUnavailableError()  # pragma: no cover - AsyncRetrying always yields
