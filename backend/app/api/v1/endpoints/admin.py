"""
Admin API Endpoints.

Provides admin-only operator management endpoints with audit logging.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.schemas.admin import (
    OperatorCreate, OperatorUpdate, OperatorListResponse, OperatorListItem, BlockUserRequest, UnblockUserRequest,
    AdminActionResponse, AuditTrailResponse, AuditLogResponse
)
from backend.app.core.guards import require_admin
from backend.app.core.security import get_password_hash
from backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from backend.app.domain.tokens.operator_store import counter_locks
from backend.app.services.audit import log_admin_action, AuditAction, get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])


async def _get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.post("/operators", response_model=OperatorListItem, status_code=status.HTTP_201_CREATED)
async def create_operator(
    operator_data: OperatorCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create an operator account (admin-only).

    New operators start with zero counters; their first token of the day
    is numbered 01.
    """
    result = await db.execute(
        select(User).where(
            or_(User.username == operator_data.username, User.phone == operator_data.phone)
        )
    )
    existing_user = result.scalar_one_or_none()

    if existing_user:
        field = "Username" if existing_user.username == operator_data.username else "Phone"
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{field} already registered"
        )

    operator = User(
        username=operator_data.username,
        phone=operator_data.phone,
        route=operator_data.route,
        hashed_password=get_password_hash(operator_data.password),
        role=UserRole.OPERATOR,
        is_active=True,
        daily_token_date=None,
        daily_token_count=0,
        total_token_count=0,
    )
    db.add(operator)
    await db.commit()
    await db.refresh(operator)

    await log_admin_action(
        db=db,
        admin_id=admin["user_id"],
        admin_username=admin["sub"],
        action=AuditAction.OPERATOR_CREATED,
        target_user_id=operator.id,
        metadata={"username": operator.username, "route": operator.route}
    )

    return OperatorListItem.model_validate(operator)


@router.get("/operators", response_model=OperatorListResponse)
async def list_operators(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    is_active: Optional[bool] = Query(None, description="Filter by active/blocked"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List operators with their token counters (admin-only).
    """
    conditions = [User.role == UserRole.OPERATOR]
    if is_active is not None:
        conditions.append(User.is_active == is_active)

    total_result = await db.execute(select(func.count(User.id)).where(*conditions))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    query = select(User).where(*conditions).order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(page_size)
    result = await db.execute(query)
    operators = result.scalars().all()

    return OperatorListResponse(
        operators=[OperatorListItem.model_validate(user) for user in operators],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/operators/{user_id}", response_model=OperatorListItem)
async def get_operator(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get a single operator with counters (admin-only).
    """
    user = await _get_user_or_404(db, user_id)
    return OperatorListItem.model_validate(user)


@router.patch("/operators/{user_id}", response_model=OperatorListItem)
async def update_operator(
    user_id: int,
    operator_data: OperatorUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Edit an operator's username, phone, route or password (admin-only).

    Counters are left untouched. The username is the token number prefix,
    so the change is made under the operator's counter lock and never lands
    in the middle of a token issue.
    """
    changes = operator_data.changes()

    async with counter_locks.hold(user_id):
        target_user = await _get_user_or_404(db, user_id)

        if target_user.role != UserRole.OPERATOR:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only operator accounts can be edited here"
            )

        clashes = []
        if "username" in changes:
            clashes.append(User.username == changes["username"])
        if "phone" in changes:
            clashes.append(User.phone == changes["phone"])
        if clashes:
            result = await db.execute(select(User).where(User.id != user_id, or_(*clashes)).limit(1))
            existing_user = result.scalar_one_or_none()
            if existing_user:
                field = "Username" if existing_user.username == changes.get("username") else "Phone"
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"{field} already registered"
                )

        password = changes.pop("password", None)
        if password is not None:
            target_user.hashed_password = get_password_hash(password)
        for field, value in changes.items():
            setattr(target_user, field, value)

        await db.commit()
        await db.refresh(target_user)

    response = OperatorListItem.model_validate(target_user)

    await log_admin_action(
        db=db,
        admin_id=admin["user_id"],
        admin_username=admin["sub"],
        action=AuditAction.OPERATOR_UPDATED,
        target_user_id=user_id,
        metadata={"fields": sorted(operator_data.model_fields_set)}
    )

    return response


@router.post("/operators/{user_id}/block", response_model=AdminActionResponse)
async def block_operator(
    user_id: int,
    request: BlockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Block an operator and revoke all their active tokens (admin-only).

    Their issued print tokens and counters are left untouched.
    """
    target_user = await _get_user_or_404(db, user_id)

    if target_user.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot block another admin user"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already blocked"
        )

    target_user.is_active = False
    await db.commit()

    await revoke_all_user_tokens(user_id)

    audit_log = await log_admin_action(
        db=db,
        admin_id=admin["user_id"],
        admin_username=admin["sub"],
        action=AuditAction.OPERATOR_BLOCKED,
        target_user_id=target_user.id,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been blocked",
        user_id=user_id,
        action=AuditAction.OPERATOR_BLOCKED,
        audit_log_id=audit_log.id
    )


@router.post("/operators/{user_id}/unblock", response_model=AdminActionResponse)
async def unblock_operator(
    user_id: int,
    request: UnblockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Unblock an operator and clear token revocations (admin-only).
    """
    target_user = await _get_user_or_404(db, user_id)

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    target_user.is_active = True
    await db.commit()

    await clear_user_token_revocation(user_id)

    audit_log = await log_admin_action(
        db=db,
        admin_id=admin["user_id"],
        admin_username=admin["sub"],
        action=AuditAction.OPERATOR_UNBLOCKED,
        target_user_id=target_user.id,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been unblocked",
        user_id=user_id,
        action=AuditAction.OPERATOR_UNBLOCKED,
        audit_log_id=audit_log.id
    )


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    entity_type: Optional[str] = Query(None, description="Filter by entity type (user, print_token)"),
    entity_id: Optional[int] = Query(None, description="Filter by entity ID"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).
    """
    logs, total = await get_audit_trail(
        db=db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total
    )
