"""
Admin API Schema Definitions.

Pydantic schemas for operator management and the audit trail.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, date
from typing import Optional, List
from backend.app.models.enums import UserRole

USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"


class OperatorCreate(BaseModel):
    """
    Schema for creating an operator account.

    The username becomes the prefix of every token number the operator issues.
    """
    username: str = Field(..., min_length=2, max_length=30, pattern=USERNAME_PATTERN)
    phone: str = Field(..., pattern=r"^\+?[0-9]{7,15}$")
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    route: str = Field(..., min_length=1, max_length=200)

    @field_validator("username", "route")
    @classmethod
    def strip(cls, value: str) -> str:
        return value.strip()


class OperatorUpdate(BaseModel):
    """
    Schema for editing an operator account.

    Only fields present in the body change. A new username changes the
    prefix of tokens issued from then on; existing token numbers stay as
    they are.
    """
    username: Optional[str] = Field(None, min_length=2, max_length=30, pattern=USERNAME_PATTERN)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{7,15}$")
    password: Optional[str] = Field(None, min_length=8)
    route: Optional[str] = Field(None, min_length=1, max_length=200)

    @field_validator("username", "phone", "password", "route")
    @classmethod
    def not_null(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("cannot be null")
        return value.strip()

    @model_validator(mode="after")
    def has_changes(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class OperatorListItem(BaseModel):
    """Schema for an operator with token counters."""
    id: int
    username: str
    phone: str
    route: Optional[str] = None
    role: UserRole
    is_active: bool
    daily_token_date: Optional[date] = None
    daily_token_count: int
    total_token_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class OperatorListResponse(BaseModel):
    """Schema for list operators response."""
    operators: List[OperatorListItem]
    total: int
    page: int
    page_size: int


class BlockUserRequest(BaseModel):
    """Schema for blocking an operator."""
    reason: Optional[str] = Field(None, description="Reason for blocking (for audit log)")


class UnblockUserRequest(BaseModel):
    """Schema for unblocking an operator."""
    reason: Optional[str] = Field(None, description="Reason for unblocking (for audit log)")


class AdminActionResponse(BaseModel):
    """Schema for admin action response."""
    success: bool
    message: str
    user_id: int
    action: str
    audit_log_id: int


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int
