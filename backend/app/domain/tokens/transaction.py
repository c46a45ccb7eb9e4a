"""
Ledger transaction boundary.

Wraps one ledger operation: commit on success, roll back on any failure,
and translate driver errors into the application's error taxonomy.
"""

import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import AppException, ConflictError, InternalError

logger = logging.getLogger("print_tokens.ledger")

# PostgreSQL SQLSTATEs for serialization_failure, deadlock_detected, lock_not_available
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_db_error(operation: str, exc: SQLAlchemyError) -> AppException:
    """Map a SQLAlchemy error to ConflictError or InternalError."""
    if isinstance(exc, DBAPIError) and _sqlstate(exc) in CONFLICT_SQLSTATES:
        return ConflictError(details={"operation": operation})
    if isinstance(exc, OperationalError) and "locked" in str(exc.orig).lower():
        # SQLite: "database is locked"
        return ConflictError(details={"operation": operation})
    if isinstance(exc, IntegrityError):
        return InternalError(f"{operation} violated a database constraint", details={"operation": operation})
    return InternalError(details={"operation": operation})


@asynccontextmanager
async def ledger_transaction(db: AsyncSession, operation: str):
    """
    Run a ledger operation as a single transaction.

    Usage:
        async with ledger_transaction(db, "create_token"):
            ...  # reads, numbering, token write, counter write

    Nothing inside the block is visible to other sessions unless the whole
    block succeeds.

    Raises:
        AppException subclasses unchanged; ConflictError / InternalError for
        database failures. Any other exception is re-raised after rollback.
    """
    try:
        yield
        await db.commit()
    except AppException as exc:
        await db.rollback()
        logger.info("%s rolled back: %s", operation, exc.message)
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("%s rolled back after database error: %s", operation, exc)
        raise translate_db_error(operation, exc) from exc
    except Exception:
        await db.rollback()
        logger.exception("%s rolled back after unexpected error", operation)
        raise
