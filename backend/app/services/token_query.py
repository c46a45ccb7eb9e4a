"""
Token query service.

Read paths over print tokens: filtering, sorting, pagination and the
updated / loaded / deleted reports. Never writes.
"""

from datetime import date
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.business_calendar import business_day_bounds
from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidInputError
from backend.app.models.print_token import PrintToken
from backend.app.models.token_state import TokenStatus

DEFAULT_SORT = "-created_at"

SORTABLE_FIELDS = {
    "id": PrintToken.id,
    "token_no": PrintToken.token_no,
    "created_at": PrintToken.created_at,
    "updated_at": PrintToken.updated_at,
    "loaded_at": PrintToken.loaded_at,
    "deleted_at": PrintToken.deleted_at,
    "vehicle_no": PrintToken.vehicle_no,
    "vehicle_type": PrintToken.vehicle_type,
    "vehicle_rate": PrintToken.vehicle_rate,
    "driver_name": PrintToken.driver_name,
    "quantity": PrintToken.quantity,
    "route": PrintToken.route,
}


class TokenFilters(BaseModel):
    """Filter, sort and page parameters for token listings."""
    operator_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    token_no: Optional[str] = None
    vehicle_no: Optional[str] = None
    is_loaded: Optional[bool] = None
    is_updated: Optional[bool] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: TokenStatus = TokenStatus.ACTIVE
    sort: str = DEFAULT_SORT
    page: int = Field(default=1, ge=1)
    limit: int = Field(default_factory=lambda: settings.default_page_limit, ge=1)

    @model_validator(mode="after")
    def check_ranges(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")
        self.limit = min(self.limit, settings.max_page_limit)
        return self


def parse_sort(sort: Optional[str]) -> list:
    """
    Turn "-created_at,token_no" into ORDER BY clauses.

    Raises:
        InvalidInputError: For fields outside SORTABLE_FIELDS
    """
    clauses = []
    for raw in (sort or DEFAULT_SORT).split(","):
        raw = raw.strip()
        if not raw:
            continue
        descending = raw.startswith("-")
        name = raw.lstrip("-+")
        column = SORTABLE_FIELDS.get(name)
        if column is None:
            raise InvalidInputError(f"Cannot sort by '{name}'", field="sort")
        clauses.append(column.desc() if descending else column.asc())

    if not clauses:
        clauses.append(PrintToken.created_at.desc())
    # Stable paging when the sort keys tie
    clauses.append(PrintToken.id.desc())
    return clauses


def build_conditions(filters: TokenFilters) -> list:
    conditions = [PrintToken.status_filter(filters.status)]

    if filters.operator_id is not None:
        conditions.append(PrintToken.operator_id == filters.operator_id)
    if filters.vehicle_id is not None:
        conditions.append(PrintToken.vehicle_id == filters.vehicle_id)
    if filters.token_no:
        conditions.append(PrintToken.token_no == filters.token_no.upper())
    if filters.vehicle_no:
        conditions.append(PrintToken.vehicle_no == filters.vehicle_no.upper())
    if filters.is_loaded is not None:
        conditions.append(PrintToken.is_loaded == filters.is_loaded)
    if filters.is_updated is True:
        conditions.append(PrintToken.updated_at.is_not(None))
    elif filters.is_updated is False:
        conditions.append(PrintToken.updated_at.is_(None))

    start, end = business_day_bounds(filters.date_from, filters.date_to)
    if start is not None:
        conditions.append(PrintToken.created_at >= start)
    if end is not None:
        conditions.append(PrintToken.created_at <= end)

    return conditions


async def list_tokens(db: AsyncSession, filters: TokenFilters) -> Tuple[List[PrintToken], int]:
    """
    Page of tokens matching the filters, plus the total under the same filter.

    Args:
        db: Database session
        filters: Filter/sort/page parameters (active tokens only by default)

    Returns:
        (tokens, total)
    """
    conditions = build_conditions(filters)
    order_by = parse_sort(filters.sort)

    total_result = await db.execute(select(func.count(PrintToken.id)).where(*conditions))
    total = total_result.scalar()

    offset = (filters.page - 1) * filters.limit
    query = select(PrintToken).where(*conditions).order_by(*order_by).offset(offset).limit(filters.limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_token(db: AsyncSession, token_id: int, include_deleted: bool = False) -> Optional[PrintToken]:
    status = TokenStatus.ALL if include_deleted else TokenStatus.ACTIVE
    result = await db.execute(
        select(PrintToken).where(PrintToken.id == token_id, PrintToken.status_filter(status))
    )
    return result.scalar_one_or_none()


def updated_report(filters: TokenFilters) -> TokenFilters:
    """Active tokens edited at least once, most recently edited first."""
    return filters.model_copy(update={
        "status": TokenStatus.ACTIVE,
        "is_updated": True,
        "sort": filters.sort if filters.sort != DEFAULT_SORT else "-updated_at",
    })


def loaded_report(filters: TokenFilters) -> TokenFilters:
    """Active tokens that passed the exit scan, most recently loaded first."""
    return filters.model_copy(update={
        "status": TokenStatus.ACTIVE,
        "is_loaded": True,
        "sort": filters.sort if filters.sort != DEFAULT_SORT else "-loaded_at",
    })


def deleted_report(filters: TokenFilters) -> TokenFilters:
    """Soft-deleted tokens, most recently deleted first."""
    return filters.model_copy(update={
        "status": TokenStatus.DELETED,
        "sort": filters.sort if filters.sort != DEFAULT_SORT else "-deleted_at",
    })
