"""
Concurrency Tests.

Validates that concurrent writers for one operator never hand out the
same token number and never lose a counter update.
"""

import asyncio

import pytest
from sqlalchemy import select

from backend.app.core.business_calendar import business_today
from backend.app.domain.tokens.ledger import TokenLedger
from backend.app.models.operator_counters import OperatorCounters
from backend.app.models.print_token import PrintToken
from backend.app.schemas.print_token import TokenCreate

CONCURRENT_CREATES = 12


def token_data(vehicle_id: int) -> TokenCreate:
    return TokenCreate(
        vehicle_id=vehicle_id,
        driver_name="Ravi Kumar",
        driver_mobile_no="9876543210",
        vehicle_no="MH12AB1234",
        route="Quarry to Depot",
        quantity=5,
    )


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_sequential_numbers(session_factory, operator, truck, fetch_user_fn):
    """N concurrent creates yield exactly JDOE01..JDOE{N}, each once."""

    async def create_one():
        async with session_factory() as db:
            return await TokenLedger.create_token(db, operator.id, token_data(truck.id))

    tokens = await asyncio.gather(*(create_one() for _ in range(CONCURRENT_CREATES)))

    numbers = sorted(token.token_no for token in tokens)
    assert numbers == [f"JDOE{n:02d}" for n in range(1, CONCURRENT_CREATES + 1)]

    stored = await fetch_user_fn(operator.id)
    assert stored.counters == OperatorCounters(business_today(), CONCURRENT_CREATES, CONCURRENT_CREATES)


@pytest.mark.asyncio
async def test_concurrent_deletes_reverse_every_token(session_factory, operator, truck, fetch_user_fn):
    """Concurrent deletes each take exactly one off the counters."""
    token_ids = []
    for _ in range(5):
        async with session_factory() as db:
            token = await TokenLedger.create_token(db, operator.id, token_data(truck.id))
            token_ids.append(token.id)

    async def delete_one(token_id):
        async with session_factory() as db:
            return await TokenLedger.delete_token(db, token_id, actor_username="admin")

    await asyncio.gather(*(delete_one(token_id) for token_id in token_ids))

    stored = await fetch_user_fn(operator.id)
    assert stored.counters == OperatorCounters(business_today(), 0, 0)

    async with session_factory() as db:
        result = await db.execute(select(PrintToken).where(PrintToken.deleted_at.is_(None)))
        assert result.scalars().all() == []
