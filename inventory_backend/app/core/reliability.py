"""
Reliability Utilities.

Retries a whole unit of work when the database reports a transient failure.
The callable must be self-contained (open its own transaction) so a retry
never observes a half-applied previous attempt.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger("inventory_ledger.reliability")

T = TypeVar("T")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (OperationalError,)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
    backoff_seconds: float = 0.05,
    operation: str = "unit_of_work",
) -> T:
    """
    Await `func()` up to `attempts` times.

    Only exceptions in `retry_on` are retried; anything else propagates on the
    first occurrence. The last transient error is re-raised when attempts run out.
    """
    attempt = 1
    while True:
        try:
            return await func()
        except retry_on as e:
            if attempt >= attempts:
                logger.error(
                    "Unit of work failed, giving up",
                    extra={"operation": operation, "attempt": attempt, "error": str(e)},
                )
                raise
            logger.warning(
                "Unit of work failed, retrying",
                extra={"operation": operation, "attempt": attempt, "error": str(e)},
            )
            await asyncio.sleep(backoff_seconds * attempt)
            attempt += 1
