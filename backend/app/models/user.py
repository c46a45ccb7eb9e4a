"""
User database model.

Operators and administrators. Operators additionally carry the running
token counters used for token numbering.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Enum, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole
from backend.app.models.operator_counters import OperatorCounters


class User(Base):
    """
    User model for authentication and operator counters.

    The counter columns are written only by the token ledger
    (backend.app.domain.tokens.ledger). Everything else treats them as read-only.
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("daily_token_count >= 0", name="ck_users_daily_token_count_non_negative"),
        CheckConstraint("total_token_count >= 0", name="ck_users_total_token_count_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, index=True, nullable=False)
    route = Column(String(200), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(Enum(UserRole), default=UserRole.OPERATOR, nullable=False)

    # Token counters. daily_token_count is only meaningful for daily_token_date
    # (a business-calendar date).
    daily_token_date = Column(Date, nullable=True)
    daily_token_count = Column(Integer, default=0, nullable=False)
    total_token_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def counters(self) -> OperatorCounters:
        return OperatorCounters(
            daily_date=self.daily_token_date,
            daily_count=self.daily_token_count or 0,
            total_count=self.total_token_count or 0,
        )

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role.value}')>"
