"""
Print token Pydantic schemas.

Defines request and response models for token issuance and reports.
Field validation here runs before any ledger transaction starts.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
from backend.app.models.token_state import TokenStatus

MOBILE_PATTERN = r"^\+?[0-9]{7,15}$"


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class TokenCreate(BaseModel):
    """Schema for issuing a new print token."""
    vehicle_id: int = Field(..., gt=0, description="Vehicle type the token is issued for")
    driver_name: str = Field(..., min_length=1, max_length=200)
    driver_mobile_no: str = Field(..., pattern=MOBILE_PATTERN, description="Digits only, 7-15 long")
    vehicle_no: str = Field(..., min_length=1, max_length=50)
    route: str = Field(..., min_length=1, max_length=200)
    quantity: float = Field(default=0, ge=0, description="May legitimately be zero")
    place: Optional[str] = Field(None, max_length=200)
    challan_pin: Optional[str] = Field(None, max_length=100)
    operator_id: Optional[int] = Field(
        default=None,
        gt=0,
        description="Issue on behalf of this operator (admin only; operators always issue as themselves)"
    )

    @field_validator("driver_name", "vehicle_no", "route")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("vehicle_no")
    @classmethod
    def normalize_vehicle_no(cls, value: str) -> str:
        return value.upper()


class TokenUpdate(BaseModel):
    """
    Schema for patching a print token.

    Only fields present in the request change. token_no, operator_id and
    created_at are not patchable.
    """
    vehicle_id: Optional[int] = Field(None, gt=0)
    driver_name: Optional[str] = Field(None, min_length=1, max_length=200)
    driver_mobile_no: Optional[str] = Field(None, pattern=MOBILE_PATTERN)
    vehicle_no: Optional[str] = Field(None, min_length=1, max_length=50)
    route: Optional[str] = Field(None, min_length=1, max_length=200)
    quantity: Optional[float] = Field(None, ge=0)
    place: Optional[str] = Field(None, max_length=200)
    challan_pin: Optional[str] = Field(None, max_length=100)
    resync_rate: bool = Field(
        default=False,
        description="Re-read the vehicle's current type and rate into the token"
    )

    @field_validator("driver_name", "vehicle_no", "route")
    @classmethod
    def not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _strip_required(value)

    @field_validator("vehicle_no")
    @classmethod
    def normalize_vehicle_no(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value

    def patch_fields(self) -> dict:
        """Fields explicitly supplied by the caller, excluding control flags."""
        return self.model_dump(exclude_unset=True, exclude={"resync_rate"})


class TokenResponse(BaseModel):
    """Schema for print token response."""
    id: int
    token_no: str
    operator_id: int
    vehicle_id: int
    vehicle_type: str
    vehicle_rate: float
    driver_name: str
    driver_mobile_no: str
    vehicle_no: str
    route: str
    quantity: float
    place: Optional[str]
    challan_pin: Optional[str]
    is_loaded: bool
    loaded_at: Optional[datetime]
    status: TokenStatus
    created_at: datetime
    updated_at: Optional[datetime]
    updated_by: Optional[str]
    deleted_at: Optional[datetime]
    deleted_by: Optional[str]

    class Config:
        from_attributes = True


class TokenListResponse(BaseModel):
    """Schema for paginated token list."""
    tokens: List[TokenResponse]
    total: int
    page: int
    limit: int


class TokenDeleteResponse(BaseModel):
    success: bool
    message: str
    token_id: int
    token_no: str
