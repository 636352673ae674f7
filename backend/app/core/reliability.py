"""
Reliability utilities for storage access.

Every service operation runs as one unit of work: bounded by a timeout,
rolled back on failure, and retried with exponential backoff when the
failure is transient (dropped connection, timeout) or when the caller
names an extra retryable error such as a lost unique-index race.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from backend.app.core.config import settings
from backend.app.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_storage_error(exc: BaseException) -> bool:
    """True for failures worth retrying: lost connections and timeouts."""
    if isinstance(exc, (OperationalError, InterfaceError, asyncio.TimeoutError, TimeoutError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False


async def run_unit_of_work(
    db: AsyncSession,
    operation: str,
    work: Callable[[], Awaitable[T]],
    retry_on: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Execute ``work`` against ``db`` with timeout, rollback and bounded retry.

    Args:
        db: Request-scoped session the work uses
        operation: Name used in logs and in StorageUnavailableError
        work: Zero-argument coroutine factory; called again on each attempt
        retry_on: Extra exception types that should trigger a retry

    Returns:
        Whatever ``work`` returns

    Raises:
        StorageUnavailableError: transient or caller-named failures outlived the
            retry budget
        Any non-transient exception raised by ``work`` (AppException, etc.)
    """

    def should_retry(exc: BaseException) -> bool:
        return is_transient_storage_error(exc) or isinstance(exc, retry_on)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, settings.storage_retry_attempts)),
        wait=wait_exponential(multiplier=settings.storage_retry_backoff_seconds, max=5),
        retry=retry_if_exception(should_retry),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                try:
                    return await asyncio.wait_for(
                        work(), timeout=settings.db_operation_timeout_seconds
                    )
                except Exception:
                    await db.rollback()
                    raise
    except Exception as exc:
        if should_retry(exc):
            logger.error("Storage operation %s failed after retries: %s", operation, exc)
            raise StorageUnavailableError(operation) from exc
        raise
