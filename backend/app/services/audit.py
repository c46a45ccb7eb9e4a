"""
Audit logging service for tracking logins, operator administration and
print token mutations.

Audit rows are written after the business transaction has committed, so a
failed audit write never rolls back a token.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"

    # Operator administration
    OPERATOR_CREATED = "OPERATOR_CREATED"
    OPERATOR_UPDATED = "OPERATOR_UPDATED"
    OPERATOR_BLOCKED = "OPERATOR_BLOCKED"
    OPERATOR_UNBLOCKED = "OPERATOR_UNBLOCKED"

    # Print tokens
    TOKEN_CREATED = "TOKEN_CREATED"
    TOKEN_UPDATED = "TOKEN_UPDATED"
    TOKEN_DELETED = "TOKEN_DELETED"
    TOKEN_LOADED = "TOKEN_LOADED"


class AuditEntity:
    USER = "user"
    PRINT_TOKEN = "print_token"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log an event to the audit log and commit it.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        entity_type: Kind of record affected (use AuditEntity constants)
        entity_id: ID of the record affected
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def log_admin_action(
    db: AsyncSession,
    admin_id: int,
    admin_username: str,
    action: str,
    target_user_id: int,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an admin action against an operator account."""
    return await log_event(
        db=db,
        action=action,
        actor_id=admin_id,
        actor_username=admin_username,
        entity_type=AuditEntity.USER,
        entity_id=target_user_id,
        metadata=metadata
    )


async def log_token_event(
    db: AsyncSession,
    action: str,
    actor: dict,
    token_id: int,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log a print token mutation.

    Args:
        db: Database session
        action: One of the TOKEN_* AuditAction constants
        actor: Decoded JWT payload of the caller
        token_id: Print token affected
        metadata: Token number, changed fields, counter effects, etc.
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=actor.get("user_id"),
        actor_username=actor.get("sub"),
        entity_type=AuditEntity.PRINT_TOKEN,
        entity_id=token_id,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an authentication event (login success/failure, logout)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        entity_type=AuditEntity.USER,
        entity_id=user_id,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> tuple[list[AuditLog], int]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        (logs, total) - most recent first, total under the same filter
    """
    conditions = []
    if entity_type:
        conditions.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        conditions.append(AuditLog.entity_id == entity_id)
    if action:
        conditions.append(AuditLog.action == action)

    total = (await db.execute(select(func.count(AuditLog.id)).where(*conditions))).scalar()

    query = select(AuditLog).where(*conditions).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total
