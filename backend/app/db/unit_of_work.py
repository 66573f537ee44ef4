"""
Atomic unit of work for ledger mutations.

Every balance-changing operation runs through ``run_atomic``: the work
callable is executed inside one database transaction that is committed on
success and rolled back on any failure, so a movement is never left
without its balance update (or one transfer leg without the other).
"""

import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """PostgreSQL reports SQLSTATE 23505; SQLite only says so in the message."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


async def run_atomic(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    retries: int = None,
) -> T:
    """
    Execute ``work`` as a single atomic unit.
    
    ``ConflictError`` (and unique-constraint races, which are reported as
    conflicts) roll back and re-run ``work`` with fresh reads, at most
    ``retries`` extra times. Every other exception, including CHECK,
    foreign-key and NOT NULL violations, rolls back and propagates
    unchanged.
    
    Args:
        db: Database session (must not hold uncommitted work of its own)
        work: Zero-argument coroutine function performing reads and writes
        retries: Extra attempts on conflict (defaults to settings)
    
    Returns:
        Whatever ``work`` returns
    
    Raises:
        ConflictError: If every attempt lost the race
    """
    attempts_left = settings.conflict_retry_attempts if retries is None else retries
    
    while True:
        try:
            result = await work()
            await db.commit()
            return result
        except IntegrityError as exc:
            await db.rollback()
            if not is_unique_violation(exc):
                raise
            conflict = ConflictError(
                "Unique constraint violated by a concurrent writer",
                details={"constraint": str(exc.orig)}
            )
            if attempts_left <= 0:
                raise conflict from exc
            logger.warning("Retrying after unique violation", extra={"conflict": conflict.details})
        except ConflictError as exc:
            await db.rollback()
            if attempts_left <= 0:
                raise
            logger.warning("Retrying after conflict", extra={"conflict": exc.details})
        except BaseException:
            await db.rollback()
            raise
        attempts_left -= 1
