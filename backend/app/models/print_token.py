"""
Print token database model.

A print token is the dispatch receipt an operator issues for a vehicle.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, CheckConstraint, Index
from backend.app.db.session import Base
from backend.app.models.token_state import ActiveToken, DeletedToken, TokenState, TokenStatus


class PrintToken(Base):
    """
    Print token model.

    token_no, operator_id and created_at never change after issuance.
    vehicle_type and vehicle_rate are copies taken at issuance (or on an
    explicit rate resync), not references to the live rate.
    Soft-deleted rows are kept for the deleted-tokens report.
    """
    __tablename__ = "print_tokens"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_print_tokens_quantity_non_negative"),
        Index("ix_print_tokens_operator_created", "operator_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - issuing operator
    operator_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Vehicle and snapshot of its type/rate
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), nullable=False, index=True)
    vehicle_type = Column(String(100), nullable=False)
    vehicle_rate = Column(Float, nullable=False)

    # Dispatch details
    driver_name = Column(String(200), nullable=False)
    driver_mobile_no = Column(String(20), nullable=False)
    vehicle_no = Column(String(50), nullable=False, index=True)
    route = Column(String(200), nullable=False)
    quantity = Column(Float, nullable=False, default=0)
    place = Column(String(200), nullable=True)
    challan_pin = Column(String(100), nullable=True)

    # Generated number, e.g. JDOE07. Not unique: suffixes restart daily.
    token_no = Column(String(120), nullable=False, index=True)

    # Exit scan
    is_loaded = Column(Boolean, default=False, nullable=False, index=True)
    loaded_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps (set explicitly by the ledger, always UTC)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String(100), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    deleted_by = Column(String(100), nullable=True)

    @property
    def state(self) -> TokenState:
        if self.deleted_at is None:
            return ActiveToken()
        return DeletedToken(at=self.deleted_at, by=self.deleted_by)

    @property
    def status(self) -> TokenStatus:
        return self.state.status

    @classmethod
    def status_filter(cls, status: TokenStatus):
        """SQL predicate selecting tokens in the given lifecycle state."""
        if status == TokenStatus.ACTIVE:
            return cls.deleted_at.is_(None)
        if status == TokenStatus.DELETED:
            return cls.deleted_at.is_not(None)
        return cls.id.is_not(None)

    def __repr__(self):
        return f"<PrintToken(id={self.id}, token_no='{self.token_no}', operator_id={self.operator_id})>"
