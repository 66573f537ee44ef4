"""
Movement database model.

Append-only record of one balance change on one account.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, String, Numeric, CheckConstraint, Index
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ledger_enums import MovementDirection


class Movement(Base):
    """
    Movement model.
    
    Immutable: corrections are new reversing movements that point at the
    original through reversal_of_id. NO updates or deletions allowed.
    
    Per account, movements ordered by id form a chain where each
    balance_before equals the previous balance_after.
    """
    __tablename__ = "movements"
    __mapper_args__ = {"eager_defaults": True}
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    # Owner
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)
    
    # Entry details
    direction = Column(Enum(MovementDirection), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    balance_before = Column(Numeric(18, 2), nullable=False)
    balance_after = Column(Numeric(18, 2), nullable=False)
    description = Column(String(255), nullable=True)
    
    # Origin
    transaction_id = Column(Integer, ForeignKey('transactions.id'), nullable=True, index=True)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=True, index=True)
    reversal_of_id = Column(Integer, ForeignKey('movements.id'), nullable=True, unique=True)
    
    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_movements_amount_positive'),
        Index('ix_movements_account_order', 'account_id', 'id'),
    )
    
    def __repr__(self):
        return f"<Movement(id={self.id}, account_id={self.account_id}, {self.direction.value} {self.amount})>"
