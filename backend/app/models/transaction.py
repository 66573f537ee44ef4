"""
Transaction database model.

A revenue, expense or transfer that produces one or more movements.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, String, Numeric, Boolean, Text, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ledger_enums import Currency, TransactionKind, TransactionStatus, TransactionOrigin


class Transaction(Base):
    """
    Transaction model.
    
    Never edited after creation. Deleting a transaction writes the inverse
    movements and flags the row (is_deleted); the row itself is kept.
    Fee and benefit are informational unless fee_account_id is wired.
    """
    __tablename__ = "transactions"
    __mapper_args__ = {"eager_defaults": True}
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    kind = Column(Enum(TransactionKind), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(Enum(Currency), nullable=False)
    motif = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    
    # Accounts (weak references)
    source_account_id = Column(Integer, ForeignKey('accounts.id'), nullable=True, index=True)
    destination_account_id = Column(Integer, ForeignKey('accounts.id'), nullable=True, index=True)
    fee_account_id = Column(Integer, ForeignKey('accounts.id'), nullable=True)
    
    # Derived financials
    fee = Column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    benefit = Column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    amount_cny = Column(Numeric(18, 2), nullable=True)
    
    # Exchange-rate snapshot at creation time
    rate_usd_to_cdf = Column(Numeric(18, 6), nullable=False)
    rate_usd_to_cny = Column(Numeric(18, 6), nullable=False)
    
    status = Column(Enum(TransactionStatus), default=TransactionStatus.SETTLED, nullable=False)
    origin = Column(Enum(TransactionOrigin), default=TransactionOrigin.MANUAL, nullable=False)
    payment_method = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    
    created_by_id = Column(Integer, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_transactions_amount_positive'),
        CheckConstraint('fee >= 0 AND fee <= amount', name='ck_transactions_fee_range'),
    )
    
    def __repr__(self):
        return f"<Transaction(id={self.id}, kind='{self.kind.value}', amount={self.amount} {self.currency.value})>"
