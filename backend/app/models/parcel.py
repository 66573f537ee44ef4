"""
Parcel database model (ledger-relevant subset).

Parcels can be paid for directly; the shipping details live in the
logistics layer.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Boolean, Numeric
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import ParcelPaymentStatus
from backend.app.models.ledger_enums import Currency


class Parcel(Base):
    """
    Parcel model.
    
    amount_paid and payment_status are maintained by payment reconciliation.
    """
    __tablename__ = "parcels"
    __mapper_args__ = {"eager_defaults": True}
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    # Ownership - Parcel belongs to a paying client
    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False, index=True)
    
    # Parcel identification
    reference_code = Column(String(100), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    weight_kg = Column(Float, nullable=True)
    
    # Financials
    amount_due = Column(Numeric(18, 2), nullable=False)
    currency = Column(Enum(Currency), nullable=False)
    amount_paid = Column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    payment_status = Column(Enum(ParcelPaymentStatus), default=ParcelPaymentStatus.UNPAID, nullable=False, index=True)
    
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    @property
    def raw_outstanding(self) -> Decimal:
        return (self.amount_due or Decimal("0")) - (self.amount_paid or Decimal("0"))
    
    @property
    def outstanding(self) -> Decimal:
        return max(self.raw_outstanding, Decimal("0"))
    
    def __repr__(self):
        return f"<Parcel(id={self.id}, ref='{self.reference_code}', payment_status='{self.payment_status.value}')>"
