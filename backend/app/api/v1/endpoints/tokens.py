"""
Print Token API Endpoints.

Operators issue tokens at the counter and mark them loaded at the exit
gate. Admins can patch and delete tokens. All counter-affecting writes go
through TokenLedger.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.exceptions import InvalidInputError, ResourceNotFoundError
from backend.app.core.guards import require_role, require_admin, is_admin, OwnershipGuard
from backend.app.domain.tokens.ledger import TokenLedger
from backend.app.domain.tokens.operator_store import OperatorStore
from backend.app.models.enums import UserRole
from backend.app.models.token_state import TokenStatus
from backend.app.schemas.print_token import (
    TokenCreate, TokenUpdate, TokenResponse, TokenListResponse, TokenDeleteResponse
)
from backend.app.services import token_query
from backend.app.services.token_query import TokenFilters
from backend.app.services.audit import log_token_event, AuditAction

logger = logging.getLogger("print_tokens.api")

router = APIRouter(prefix="/tokens", tags=["Print Tokens"])
ownership_guard = OwnershipGuard()

any_staff = require_role([UserRole.OPERATOR, UserRole.ADMIN])


async def token_filters(
    operator_id: Optional[int] = Query(None, description="Issuing operator (admins only; operators always see their own)"),
    operator: Optional[str] = Query(None, description="Issuing operator username (admins only)"),
    vehicle_id: Optional[int] = Query(None),
    token_no: Optional[str] = Query(None),
    vehicle_no: Optional[str] = Query(None),
    is_loaded: Optional[bool] = Query(None),
    is_updated: Optional[bool] = Query(None),
    date_from: Optional[date] = Query(None, description="Business date, inclusive"),
    date_to: Optional[date] = Query(None, description="Business date, inclusive"),
    token_status: TokenStatus = Query(TokenStatus.ACTIVE, alias="status"),
    sort: Optional[str] = Query(None, description="Comma separated fields, '-' prefix for descending"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    current_user: dict = Depends(any_staff),
    db: AsyncSession = Depends(get_db),
) -> TokenFilters:
    """Build TokenFilters from query parameters, scoped to what the caller may see."""
    if operator and is_admin(current_user):
        named = await OperatorStore.find_by_username(db, operator, include_inactive=True)
        if not named:
            raise ResourceNotFoundError("Operator", message=f"Operator '{operator}' not found")
        operator_id = named.id

    params = {
        "operator_id": ownership_guard.filter_by_ownership(current_user, operator_id),
        "vehicle_id": vehicle_id,
        "token_no": token_no,
        "vehicle_no": vehicle_no,
        "is_loaded": is_loaded,
        "is_updated": is_updated,
        "date_from": date_from,
        "date_to": date_to,
        "status": token_status,
        "page": page,
    }
    if sort:
        params["sort"] = sort
    if limit is not None:
        params["limit"] = limit

    try:
        return TokenFilters(**params)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ())) or None
        raise InvalidInputError(error.get("msg", "Invalid query parameters"), field=field)


async def _token_page(db: AsyncSession, filters: TokenFilters) -> TokenListResponse:
    tokens, total = await token_query.list_tokens(db, filters)
    return TokenListResponse(
        tokens=[TokenResponse.model_validate(token) for token in tokens],
        total=total,
        page=filters.page,
        limit=filters.limit
    )


async def _record_token_event(db: AsyncSession, action: str, actor: dict, token_id: int, metadata: dict) -> None:
    """
    Write the audit row for a token mutation that has already committed.

    A failed audit write is logged and rolled back; the caller still gets
    the committed result, so a retry never issues a second token.
    """
    try:
        await log_token_event(db=db, action=action, actor=actor, token_id=token_id, metadata=metadata)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Audit write for %s on token %s failed", action, token_id)


@router.post("", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def create_token(
    token_data: TokenCreate,
    current_user: dict = Depends(any_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue a print token.

    Operators always issue as themselves. An admin may issue on behalf of
    an operator by passing operator_id.

    The token number is the operator's username (upper-cased) followed by
    the two-digit daily sequence, e.g. JDOE01.
    """
    operator_id = current_user["user_id"]
    if is_admin(current_user) and token_data.operator_id:
        target = await OperatorStore.find_by_id(db, token_data.operator_id)
        if not target:
            raise ResourceNotFoundError("Operator", token_data.operator_id)
        if target.role != UserRole.OPERATOR:
            raise InvalidInputError("Tokens can only be issued on behalf of an operator", field="operator_id")
        operator_id = token_data.operator_id

    token = await TokenLedger.create_token(db, operator_id, token_data)
    response = TokenResponse.model_validate(token)

    await _record_token_event(
        db,
        AuditAction.TOKEN_CREATED,
        current_user,
        response.id,
        {"token_no": response.token_no, "operator_id": response.operator_id}
    )

    return response


@router.get("", response_model=TokenListResponse)
async def list_tokens(
    filters: TokenFilters = Depends(token_filters),
    db: AsyncSession = Depends(get_db)
):
    """
    List print tokens, newest first by default.

    Deleted tokens are hidden unless status=DELETED or status=ALL is asked for.
    """
    return await _token_page(db, filters)


@router.get("/reports/updated", response_model=TokenListResponse)
async def updated_tokens_report(
    filters: TokenFilters = Depends(token_filters),
    db: AsyncSession = Depends(get_db)
):
    """Tokens that were edited after issue."""
    return await _token_page(db, token_query.updated_report(filters))


@router.get("/reports/loaded", response_model=TokenListResponse)
async def loaded_tokens_report(
    filters: TokenFilters = Depends(token_filters),
    db: AsyncSession = Depends(get_db)
):
    """Tokens that passed the exit scan."""
    return await _token_page(db, token_query.loaded_report(filters))


@router.get("/reports/deleted", response_model=TokenListResponse)
async def deleted_tokens_report(
    filters: TokenFilters = Depends(token_filters),
    db: AsyncSession = Depends(get_db)
):
    """Soft-deleted tokens."""
    return await _token_page(db, token_query.deleted_report(filters))


@router.get("/{token_id}", response_model=TokenResponse)
async def get_token(
    token_id: int = Path(..., description="Print token ID"),
    include_deleted: bool = Query(False, description="Admins only: also return soft-deleted tokens"),
    current_user: dict = Depends(any_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Get a single print token.

    Operators can only read tokens they issued.
    """
    token = await token_query.get_token(db, token_id, include_deleted=include_deleted and is_admin(current_user))
    if not token:
        raise ResourceNotFoundError("Print token", token_id)

    ownership_guard.enforce(token.operator_id, current_user, "print token")
    return TokenResponse.model_validate(token)


@router.patch("/{token_id}", response_model=TokenResponse)
async def update_token(
    token_data: TokenUpdate,
    token_id: int = Path(..., description="Print token ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Patch a print token (admin-only).

    Only fields present in the body change. The token number, issuing
    operator and issue time never change, and neither do the operator's
    counters. Pass resync_rate=true to refresh the vehicle type and rate.
    """
    changed = sorted(token_data.patch_fields())
    token = await TokenLedger.update_token(db, token_id, admin["sub"], token_data)
    response = TokenResponse.model_validate(token)

    await _record_token_event(
        db,
        AuditAction.TOKEN_UPDATED,
        admin,
        response.id,
        {"token_no": response.token_no, "fields": changed, "resync_rate": token_data.resync_rate}
    )

    return response


@router.delete("/{token_id}", response_model=TokenDeleteResponse)
async def delete_token(
    token_id: int = Path(..., description="Print token ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Soft-delete a print token (admin-only).

    The issuing operator's total count always goes down by one. The daily
    count goes down only when the token belongs to the operator's current
    daily window.
    """
    token = await TokenLedger.delete_token(db, token_id, actor_username=admin["sub"])
    response = TokenDeleteResponse(
        success=True,
        message=f"Token {token.token_no} deleted",
        token_id=token.id,
        token_no=token.token_no
    )

    await _record_token_event(
        db,
        AuditAction.TOKEN_DELETED,
        admin,
        response.token_id,
        {"token_no": response.token_no, "operator_id": token.operator_id}
    )

    return response


@router.post("/{token_id}/loaded", response_model=TokenResponse)
async def mark_token_loaded(
    token_id: int = Path(..., description="Print token ID"),
    current_user: dict = Depends(any_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Record that the vehicle left loaded (exit scan).

    The issuing operator or an admin may do this once per token.
    """
    token = await TokenLedger.mark_loaded(db, token_id, current_user)
    response = TokenResponse.model_validate(token)

    await _record_token_event(
        db,
        AuditAction.TOKEN_LOADED,
        current_user,
        response.id,
        {"token_no": response.token_no}
    )

    return response
