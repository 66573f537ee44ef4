"""
Invoice database model (ledger-relevant subset).

Covers invoices and quotes. The stored status is the gated lifecycle
state; partially-paid and sent are derived for display.
"""

from datetime import date
from decimal import Decimal
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, String, Numeric, Boolean, Date, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import InvoiceStatus, DocumentType
from backend.app.models.ledger_enums import Currency


class Invoice(Base):
    """
    Invoice model.
    
    amount_paid is maintained by payment reconciliation only; status is
    changed by the invoice state machine only.
    """
    __tablename__ = "invoices"
    __mapper_args__ = {"eager_defaults": True}
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    number = Column(String(50), nullable=False)
    document_type = Column(Enum(DocumentType), default=DocumentType.INVOICE, nullable=False)
    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False, index=True)
    
    # Financials
    total_amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(Enum(Currency), nullable=False)
    amount_paid = Column(Numeric(18, 2), default=Decimal("0"), nullable=False)
    
    due_date = Column(Date, nullable=True)
    status = Column(Enum(InvoiceStatus), default=InvoiceStatus.DRAFT, nullable=False, index=True)
    is_sent = Column(Boolean, default=False, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __table_args__ = (
        UniqueConstraint('organization_id', 'number', name='uq_invoices_org_number'),
    )
    
    @property
    def raw_outstanding(self) -> Decimal:
        """Total minus paid, negative when overpaid. Kept for audit."""
        return (self.total_amount or Decimal("0")) - (self.amount_paid or Decimal("0"))
    
    @property
    def outstanding(self) -> Decimal:
        """Outstanding balance floored at zero for display."""
        return max(self.raw_outstanding, Decimal("0"))
    
    @property
    def display_status(self) -> InvoiceStatus:
        if self.status == InvoiceStatus.VALIDATED:
            if (self.amount_paid or 0) > 0 and self.raw_outstanding > 0:
                return InvoiceStatus.PARTIALLY_PAID
            if self.is_sent:
                return InvoiceStatus.SENT
        return self.status
    
    def is_overdue(self, today: date) -> bool:
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return False
        return self.due_date is not None and self.due_date < today and self.raw_outstanding > 0
    
    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.number}', status='{self.status.value}')>"
