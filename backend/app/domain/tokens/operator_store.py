"""
Operator Store.

Reads operator rows and writes their token counters. Every call runs on the
caller's session, so it joins whatever transaction the ledger has open.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ConflictError, ResourceNotFoundError
from backend.app.models.operator_counters import OperatorCounters
from backend.app.models.user import User


class CounterLocks:
    """
    Per-operator asyncio locks.

    Serializes counter writers for the same operator inside one worker
    process. Different operators get different locks and never wait on each
    other. Cross-process ordering comes from the row lock and the
    compare-and-swap in OperatorStore.update_counters.
    """

    def __init__(self):
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, operator_id: int):
        async with self._locks[operator_id]:
            yield

    def clear(self):
        self._locks.clear()


counter_locks = CounterLocks()


class OperatorStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, operator_id: int, include_inactive: bool = False) -> Optional[User]:
        query = select(User).where(User.id == operator_id)
        if not include_inactive:
            query = query.where(User.is_active == True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def find_by_username(db: AsyncSession, username: str, include_inactive: bool = False) -> Optional[User]:
        query = select(User).where(User.username == username)
        if not include_inactive:
            query = query.where(User.is_active == True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_for_update(db: AsyncSession, operator_id: int, include_inactive: bool = False) -> User:
        """
        Load an operator row and lock it for the rest of the transaction.

        Uses SELECT ... FOR UPDATE (ignored by SQLite) and refreshes the
        identity map so the counters are the committed values, not a stale
        copy from earlier in the session.

        Raises:
            ResourceNotFoundError: If the operator does not exist (or is blocked,
                unless include_inactive is set)
        """
        query = (
            select(User)
            .where(User.id == operator_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if not include_inactive:
            query = query.where(User.is_active == True)

        result = await db.execute(query)
        operator = result.scalar_one_or_none()
        if not operator:
            raise ResourceNotFoundError("Operator", operator_id)
        return operator

    @staticmethod
    async def update_counters(
        db: AsyncSession,
        operator_id: int,
        expected: OperatorCounters,
        new: OperatorCounters
    ) -> OperatorCounters:
        """
        Compare-and-swap the operator's counters.

        The UPDATE only matches if the row still holds `expected`, so a
        concurrent writer that slipped past the row lock cannot be overwritten.

        Raises:
            ConflictError: If the stored counters no longer equal `expected`
        """
        if expected.daily_date is None:
            date_matches = User.daily_token_date.is_(None)
        else:
            date_matches = User.daily_token_date == expected.daily_date

        result = await db.execute(
            update(User)
            .where(
                User.id == operator_id,
                date_matches,
                User.daily_token_count == expected.daily_count,
                User.total_token_count == expected.total_count,
            )
            .values(
                daily_token_date=new.daily_date,
                daily_token_count=new.daily_count,
                total_token_count=new.total_count,
            )
            .execution_options(synchronize_session="evaluate")
        )

        if result.rowcount != 1:
            raise ConflictError(
                "Operator counters changed concurrently",
                details={"operator_id": operator_id}
            )
        return new
