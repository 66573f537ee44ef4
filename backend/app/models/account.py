"""
Financial account database model.

An account owns its balance exclusively. The balance is only ever written
by the account store, together with the movement that explains it.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Numeric, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ledger_enums import AccountType, Currency


class Account(Base):
    """
    Account model.
    
    Soft-disabled (is_active=False) rather than deleted once it has movements.
    """
    __tablename__ = "accounts"
    __mapper_args__ = {"eager_defaults": True}
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    name = Column(String(100), nullable=False)
    account_type = Column(Enum(AccountType), default=AccountType.CASH, nullable=False)
    currency = Column(Enum(Currency), nullable=False)
    
    # Financials
    current_balance = Column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    allow_negative = Column(Boolean, default=False, nullable=False)
    
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_accounts_org_name'),
    )
    
    def __repr__(self):
        return f"<Account(id={self.id}, name='{self.name}', balance={self.current_balance} {self.currency.value})>"
