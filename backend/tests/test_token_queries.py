"""
Token query and report tests.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import update

from backend.app.core.business_calendar import business_today, utc_now
from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidInputError
from backend.app.domain.tokens.ledger import TokenLedger
from backend.app.models.print_token import PrintToken
from backend.app.models.token_state import TokenStatus
from backend.app.schemas.print_token import TokenCreate
from backend.app.services import token_query
from backend.app.services.token_query import TokenFilters, parse_sort


async def issue_many(session_factory, operator_id, vehicle_id, count):
    tokens = []
    for n in range(count):
        async with session_factory() as db:
            tokens.append(await TokenLedger.create_token(db, operator_id, TokenCreate(
                vehicle_id=vehicle_id,
                driver_name=f"Driver {n}",
                driver_mobile_no="9876543210",
                vehicle_no=f"MH12AB{1000 + n}",
                route="Quarry to Depot",
                quantity=n,
            )))
    return tokens


def test_parse_sort_accepts_known_fields():
    clauses = parse_sort("-quantity,token_no")

    # two requested keys plus the id tie-breaker
    assert len(clauses) == 3


def test_parse_sort_rejects_unknown_fields():
    with pytest.raises(InvalidInputError):
        parse_sort("hashed_password")


def test_filters_reject_inverted_date_range():
    with pytest.raises(ValidationError):
        TokenFilters(date_from=business_today(), date_to=business_today() - timedelta(days=1))


def test_filters_cap_limit():
    filters = TokenFilters(limit=settings.max_page_limit + 500)

    assert filters.limit == settings.max_page_limit
    assert TokenFilters().limit == settings.default_page_limit


@pytest.mark.asyncio
async def test_default_order_is_newest_first(session_factory, operator, truck):
    await issue_many(session_factory, operator.id, truck.id, 3)

    async with session_factory() as db:
        tokens, total = await token_query.list_tokens(db, TokenFilters())

    assert total == 3
    assert [t.token_no for t in tokens] == ["JDOE03", "JDOE02", "JDOE01"]


@pytest.mark.asyncio
async def test_pagination(session_factory, operator, truck):
    await issue_many(session_factory, operator.id, truck.id, 5)

    async with session_factory() as db:
        tokens, total = await token_query.list_tokens(db, TokenFilters(sort="token_no", page=2, limit=2))

    assert total == 5
    assert [t.token_no for t in tokens] == ["JDOE03", "JDOE04"]


@pytest.mark.asyncio
async def test_filter_by_vehicle_no_and_loaded(session_factory, operator, truck):
    tokens = await issue_many(session_factory, operator.id, truck.id, 3)
    async with session_factory() as db:
        await TokenLedger.mark_loaded(db, tokens[1].id, {"user_id": operator.id, "sub": "jdoe", "role": "OPERATOR"})

    async with session_factory() as db:
        by_vehicle, _ = await token_query.list_tokens(db, TokenFilters(vehicle_no="mh12ab1002"))
        loaded, _ = await token_query.list_tokens(db, TokenFilters(is_loaded=True))
        waiting, _ = await token_query.list_tokens(db, TokenFilters(is_loaded=False))

    assert [t.id for t in by_vehicle] == [tokens[2].id]
    assert [t.id for t in loaded] == [tokens[1].id]
    assert {t.id for t in waiting} == {tokens[0].id, tokens[2].id}


@pytest.mark.asyncio
async def test_date_range_uses_business_days(session_factory, operator, truck):
    old, recent = await issue_many(session_factory, operator.id, truck.id, 2)
    async with session_factory() as db:
        await db.execute(
            update(PrintToken).where(PrintToken.id == old.id).values(created_at=utc_now() - timedelta(days=3))
        )
        await db.commit()

    today = business_today()
    async with session_factory() as db:
        todays, _ = await token_query.list_tokens(db, TokenFilters(date_from=today, date_to=today))
        earlier, _ = await token_query.list_tokens(db, TokenFilters(date_to=today - timedelta(days=1)))
        future, _ = await token_query.list_tokens(db, TokenFilters(date_from=today + timedelta(days=1)))

    assert [t.id for t in todays] == [recent.id]
    assert [t.id for t in earlier] == [old.id]
    assert future == []


@pytest.mark.asyncio
async def test_status_filter_and_get_token(session_factory, operator, truck):
    kept, removed = await issue_many(session_factory, operator.id, truck.id, 2)
    async with session_factory() as db:
        await TokenLedger.delete_token(db, removed.id)

    async with session_factory() as db:
        active, _ = await token_query.list_tokens(db, TokenFilters())
        deleted, _ = await token_query.list_tokens(db, TokenFilters(status=TokenStatus.DELETED))
        everything, total = await token_query.list_tokens(db, TokenFilters(status=TokenStatus.ALL))

        assert await token_query.get_token(db, removed.id) is None
        assert (await token_query.get_token(db, removed.id, include_deleted=True)).id == removed.id

    assert [t.id for t in active] == [kept.id]
    assert [t.id for t in deleted] == [removed.id]
    assert total == 2


def test_reports_override_status_and_default_sort():
    base = TokenFilters()

    assert token_query.updated_report(base).is_updated is True
    assert token_query.updated_report(base).sort == "-updated_at"
    assert token_query.loaded_report(base).is_loaded is True
    assert token_query.deleted_report(base).status == TokenStatus.DELETED
    assert token_query.deleted_report(TokenFilters(sort="token_no")).sort == "token_no"
