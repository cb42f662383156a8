"""
Transaction runner

Every multi-statement write in the services goes through run_in_transaction():
the operation runs, the session commits, and any failure rolls the whole unit
back. Serialization failures, deadlocks, busy SQLite files and dropped
connections are retried on a short backoff schedule before surfacing as
TransientStorageError.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import TransientStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})


def is_transient_error(exc: BaseException) -> bool:
    """Whether a database error is worth retrying in a fresh transaction."""
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True

    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if code in TRANSIENT_SQLSTATES:
        return True

    return isinstance(exc, OperationalError) and "locked" in str(exc.orig).lower()


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    retry_on_conflict: bool = False,
    max_retries: int | None = None,
    backoff: Sequence[float] | None = None,
) -> T:
    """
    Run ``operation`` and commit, retrying transient failures.

    Args:
        db: Session the operation works on
        operation: Zero-argument coroutine function doing the reads and writes
        name: Operation name used in logs and in TransientStorageError
        retry_on_conflict: Also retry unique-constraint violations, for
            operations that recompute their values on each attempt
        max_retries: Override settings.transaction_max_retries
        backoff: Override settings.transaction_retry_backoff (seconds)

    Returns:
        Whatever ``operation`` returned
    """
    retries = settings.transaction_max_retries if max_retries is None else max_retries
    delays = list(settings.transaction_retry_backoff if backoff is None else backoff) or [0.0]

    attempt = 0
    while True:
        attempt += 1
        try:
            result = await operation()
            await db.commit()
            return result
        except Exception as exc:
            await db.rollback()

            retryable = is_transient_error(exc) or (retry_on_conflict and isinstance(exc, IntegrityError))
            if not retryable:
                raise
            if attempt > retries:
                logger.error(
                    "Transaction %s failed after %d attempts: %s",
                    name,
                    attempt,
                    exc,
                    extra={"operation": name, "attempt": attempt},
                )
                raise TransientStorageError(operation=name) from exc

            delay = delays[min(attempt - 1, len(delays) - 1)]
            logger.warning(
                "Retrying transaction %s in %.2fs (attempt %d): %s",
                name,
                delay,
                attempt,
                exc,
                extra={"operation": name, "attempt": attempt},
            )
            await asyncio.sleep(delay)
