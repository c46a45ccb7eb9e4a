"""
Token Ledger (Domain Logic).

The only writer of operator token counters. Issues, patches, soft-deletes
and load-marks print tokens, each inside one transaction that covers the
token row and the operator counter row together.

Ordering for one operator:
1. In-process per-operator lock (counter_locks)
2. SELECT ... FOR UPDATE on the operator row
3. Compare-and-swap UPDATE of the counters

A token is never visible without its counter increment, and a counter is
never changed without its token.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.business_calendar import business_date, utc_now
from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidInputError,
    InvalidTokenStateError,
    ResourceNotFoundError,
)
from backend.app.domain.tokens.numbering import next_token_number, reverse_counters
from backend.app.domain.tokens.operator_store import OperatorStore, counter_locks
from backend.app.domain.tokens.rate_resolver import RateResolver, RateSnapshot
from backend.app.domain.tokens.transaction import ledger_transaction, translate_db_error
from backend.app.models.enums import UserRole
from backend.app.models.print_token import PrintToken
from backend.app.models.token_state import TokenStatus
from backend.app.schemas.print_token import TokenCreate, TokenUpdate

logger = logging.getLogger("print_tokens.ledger")

NON_NULLABLE_PATCH_FIELDS = {"vehicle_id", "driver_name", "driver_mobile_no", "vehicle_no", "route", "quantity"}


def _apply_snapshot(token: PrintToken, snapshot: RateSnapshot) -> None:
    token.vehicle_id = snapshot.vehicle_id
    token.vehicle_type = snapshot.vehicle_type
    token.vehicle_rate = snapshot.vehicle_rate


class TokenLedger:

    @staticmethod
    async def get_active_token(db: AsyncSession, token_id: int, for_update: bool = False) -> PrintToken:
        """
        Load a token that has not been soft-deleted.

        Raises:
            ResourceNotFoundError: If the token is missing or deleted
        """
        query = select(PrintToken).where(
            PrintToken.id == token_id,
            PrintToken.status_filter(TokenStatus.ACTIVE)
        ).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()

        result = await db.execute(query)
        token = result.scalar_one_or_none()
        if not token:
            raise ResourceNotFoundError("Print token", token_id)
        return token

    @staticmethod
    async def create_token(db: AsyncSession, operator_id: int, data: TokenCreate) -> PrintToken:
        """
        Issue a new print token for an operator.

        Flow (one transaction):
        1. Lock and load the operator
        2. Resolve vehicle and current rate into a snapshot
        3. Compute the token number from the operator's counters
        4. Insert the token
        5. Compare-and-swap the counters {today, n, total + 1}

        Args:
            db: Database session
            operator_id: Issuing operator
            data: Validated token fields

        Returns:
            The committed PrintToken (with token_no)

        Raises:
            ResourceNotFoundError: Operator, vehicle or rate missing
            ConflictError: Counters changed under us / transaction conflict
            InternalError: Any other persistence failure
        """
        async with counter_locks.hold(operator_id):
            async with ledger_transaction(db, "create_token"):
                operator = await OperatorStore.get_for_update(db, operator_id)
                snapshot = await RateResolver.resolve_snapshot(db, data.vehicle_id)

                now = utc_now()
                counters = operator.counters
                issued = next_token_number(operator.username, counters, business_date(now))

                token = PrintToken(
                    operator_id=operator.id,
                    driver_name=data.driver_name,
                    driver_mobile_no=data.driver_mobile_no,
                    vehicle_no=data.vehicle_no,
                    route=data.route,
                    quantity=data.quantity,
                    place=data.place,
                    challan_pin=data.challan_pin,
                    token_no=issued.token_no,
                    is_loaded=False,
                    loaded_at=None,
                    created_at=now,
                    updated_at=None,
                    updated_by=None,
                    deleted_at=None,
                    deleted_by=None,
                )
                _apply_snapshot(token, snapshot)
                db.add(token)
                await db.flush()

                await OperatorStore.update_counters(db, operator.id, counters, issued.counters)

        logger.info(
            "Issued token %s (id=%s) for operator %s; daily=%s total=%s",
            token.token_no, token.id, operator_id, issued.counters.daily_count, issued.counters.total_count
        )
        return token

    @staticmethod
    async def update_token(
        db: AsyncSession,
        token_id: int,
        actor_username: str,
        patch: TokenUpdate
    ) -> PrintToken:
        """
        Patch a print token's mutable fields.

        Counters are never touched. The vehicle type/rate snapshot changes
        only when patch.resync_rate is set or the vehicle itself is changed.

        Raises:
            ResourceNotFoundError: Token missing/deleted, or vehicle/rate missing on resync
            InvalidInputError: A required field was explicitly set to null
        """
        changes = patch.patch_fields()
        nulled = sorted(field for field in NON_NULLABLE_PATCH_FIELDS if field in changes and changes[field] is None)
        if nulled:
            raise InvalidInputError(f"Field '{nulled[0]}' cannot be null", field=nulled[0])

        async with ledger_transaction(db, "update_token"):
            token = await TokenLedger.get_active_token(db, token_id, for_update=True)

            vehicle_id = changes.pop("vehicle_id", token.vehicle_id)
            if patch.resync_rate or vehicle_id != token.vehicle_id:
                snapshot = await RateResolver.resolve_snapshot(db, vehicle_id)
                _apply_snapshot(token, snapshot)

            for field, value in changes.items():
                setattr(token, field, value)

            token.updated_at = utc_now()
            token.updated_by = actor_username

        logger.info("Updated token %s (id=%s) by %s", token.token_no, token.id, actor_username)
        return token

    @staticmethod
    async def delete_token(db: AsyncSession, token_id: int, actor_username: Optional[str] = None) -> PrintToken:
        """
        Soft-delete a token and reverse its effect on the issuer's counters.

        Flow (one transaction):
        1. Load the active token (NotFound otherwise)
        2. Lock and load the owning operator
        3. Decrement the daily count only if the token was issued in the
           operator's current daily window and the count is above zero
        4. Decrement the total count, floored at zero
        5. Stamp deleted_at / deleted_by

        Returns:
            The soft-deleted PrintToken
        """
        # operator_id is immutable, so it can be read before taking the operator lock.
        try:
            owner_id = (await db.execute(
                select(PrintToken.operator_id).where(
                    PrintToken.id == token_id,
                    PrintToken.status_filter(TokenStatus.ACTIVE)
                )
            )).scalar_one_or_none()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.warning("delete_token owner lookup failed: %s", exc)
            raise translate_db_error("delete_token", exc) from exc
        if owner_id is None:
            raise ResourceNotFoundError("Print token", token_id)

        async with counter_locks.hold(owner_id):
            async with ledger_transaction(db, "delete_token"):
                token = await TokenLedger.get_active_token(db, token_id, for_update=True)
                operator = await OperatorStore.get_for_update(db, token.operator_id, include_inactive=True)

                counters = operator.counters
                reversed_counters = reverse_counters(counters, business_date(token.created_at))
                await OperatorStore.update_counters(db, operator.id, counters, reversed_counters)

                token.deleted_at = utc_now()
                token.deleted_by = actor_username

        logger.info(
            "Deleted token %s (id=%s) by %s; operator %s daily=%s total=%s",
            token.token_no, token.id, actor_username, owner_id,
            reversed_counters.daily_count, reversed_counters.total_count
        )
        return token

    @staticmethod
    async def mark_loaded(db: AsyncSession, token_id: int, actor: dict) -> PrintToken:
        """
        Record the exit scan of a token (is_loaded False -> True).

        Only the issuing operator or an admin may mark a token loaded.
        There is no way back to unloaded.

        Raises:
            ResourceNotFoundError: Token missing or deleted
            InsufficientPermissionsError: Caller is neither issuer nor admin
            InvalidTokenStateError: Token already loaded
        """
        async with ledger_transaction(db, "mark_loaded"):
            token = await TokenLedger.get_active_token(db, token_id, for_update=True)

            is_admin = actor.get("role") == UserRole.ADMIN.value
            if not is_admin and actor.get("user_id") != token.operator_id:
                raise InsufficientPermissionsError("Only the issuing operator or an admin can mark this token loaded")

            if token.is_loaded:
                raise InvalidTokenStateError(f"Token {token.token_no} is already loaded")

            now = utc_now()
            token.is_loaded = True
            token.loaded_at = now
            token.updated_at = now
            token.updated_by = actor.get("sub")

        logger.info("Token %s (id=%s) marked loaded by %s", token.token_no, token.id, actor.get("sub"))
        return token
