"""
Print token lifecycle state.

A token is either active or soft-deleted. The deleted_at column is the
storage form; callers work with these tagged values and the explicit
status filter instead of checking the nullable column themselves.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


class TokenStatus(str, enum.Enum):
    """Status filter for token queries."""
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"
    ALL = "ALL"


@dataclass(frozen=True)
class ActiveToken:
    status: TokenStatus = TokenStatus.ACTIVE


@dataclass(frozen=True)
class DeletedToken:
    at: datetime
    by: Optional[str] = None
    status: TokenStatus = TokenStatus.DELETED


TokenState = Union[ActiveToken, DeletedToken]
