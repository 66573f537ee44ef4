"""
Pending transaction database model.

Machine-proposed transactions awaiting confirmation from the channel
that produced them.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, String, Numeric, Float, Index, text
from backend.app.db.session import Base
from backend.app.models.agent_enums import PendingStatus
from backend.app.models.ledger_enums import Currency, TransactionKind

_LIVE = text("status = 'PENDING'")


class PendingTransaction(Base):
    """
    Pending Transaction model.
    
    Enforces at most one PENDING entry per (organization, channel) through a
    partial unique index. Expiry is evaluated lazily against expires_at.
    """
    __tablename__ = "pending_transactions"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    channel_id = Column(String(100), nullable=False, index=True)
    
    # Proposal
    kind = Column(Enum(TransactionKind), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(Enum(Currency), nullable=False)
    motif = Column(String(255), nullable=False)
    account_name = Column(String(100), nullable=False)
    category = Column(String(100), nullable=True)
    confidence = Column(Float, nullable=False)
    
    # Lifecycle
    status = Column(Enum(PendingStatus), default=PendingStatus.PENDING, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    transaction_id = Column(Integer, ForeignKey('transactions.id'), nullable=True)
    
    __table_args__ = (
        Index('ix_pending_transactions_live', 'organization_id', 'channel_id', unique=True,
              postgresql_where=_LIVE, sqlite_where=_LIVE),
    )
    
    def __repr__(self):
        return f"<PendingTransaction(id={self.id}, channel='{self.channel_id}', status='{self.status.value}')>"
