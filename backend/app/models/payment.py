"""
Payment database model.

Money received against an invoice or a parcel.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, String, Numeric, Boolean, Date, Text, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import PaymentTargetType


class Payment(Base):
    """
    Payment model.
    
    Exactly one of invoice_id / parcel_id is set, matching target_type.
    Deleting a payment reverses its movement and flags the row.
    """
    __tablename__ = "payments"
    __mapper_args__ = {"eager_defaults": True}
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    # Target
    target_type = Column(Enum(PaymentTargetType), nullable=False)
    invoice_id = Column(Integer, ForeignKey('invoices.id'), nullable=True, index=True)
    parcel_id = Column(Integer, ForeignKey('parcels.id'), nullable=True, index=True)
    
    # Parties
    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False, index=True)  # Payer
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)  # Receiving account
    
    # Financials
    amount_paid = Column(Numeric(18, 2), nullable=False)
    is_overpayment = Column(Boolean, default=False, nullable=False)
    payment_method = Column(String(50), nullable=True)
    paid_on = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    
    created_by_id = Column(Integer, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    __table_args__ = (
        CheckConstraint('amount_paid > 0', name='ck_payments_amount_positive'),
    )
    
    @property
    def target_id(self) -> int:
        return self.invoice_id if self.target_type == PaymentTargetType.INVOICE else self.parcel_id
    
    def __repr__(self):
        return f"<Payment(id={self.id}, {self.target_type.value}={self.target_id}, amount={self.amount_paid})>"
