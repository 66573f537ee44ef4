"""
Billing schemas: clients, invoices, parcels and payments.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.billing_enums import (
    InvoiceStatus, DocumentType, PaymentTargetType, ParcelPaymentStatus
)
from backend.app.models.ledger_enums import Currency


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)


class ClientResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str]
    is_active: bool
    
    class Config:
        from_attributes = True


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice or quote (always starts as a draft)."""
    number: str = Field(..., min_length=1, max_length=50)
    document_type: DocumentType = DocumentType.INVOICE
    client_id: int
    total_amount: Decimal = Field(..., gt=0)
    currency: Currency
    due_date: Optional[date] = None


class InvoiceResponse(BaseModel):
    id: int
    number: str
    document_type: DocumentType
    client_id: int
    total_amount: Decimal
    currency: Currency
    amount_paid: Decimal
    outstanding: Decimal
    raw_outstanding: Decimal
    due_date: Optional[date]
    status: InvoiceStatus
    display_status: InvoiceStatus
    is_sent: bool
    
    class Config:
        from_attributes = True


class InvoiceTransitionRequest(BaseModel):
    status: InvoiceStatus


class BulkTransitionRequest(BaseModel):
    invoice_ids: List[int] = Field(..., min_length=1)
    status: InvoiceStatus


class TransitionResultResponse(BaseModel):
    """Per-invoice outcome of a bulk transition."""
    invoice_id: int
    success: bool
    status: Optional[InvoiceStatus] = None
    error_code: Optional[str] = None
    details: dict = {}


class ParcelCreate(BaseModel):
    reference_code: str = Field(..., min_length=1, max_length=100)
    client_id: int
    description: Optional[str] = Field(None, max_length=500)
    weight_kg: Optional[float] = Field(None, gt=0)
    amount_due: Decimal = Field(..., gt=0)
    currency: Currency


class ParcelResponse(BaseModel):
    id: int
    reference_code: str
    client_id: int
    amount_due: Decimal
    amount_paid: Decimal
    outstanding: Decimal
    currency: Currency
    payment_status: ParcelPaymentStatus
    
    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    """Schema for recording money received against an invoice or a parcel."""
    target_type: PaymentTargetType
    target_id: int
    client_id: int
    amount_paid: Decimal
    account_id: int
    payment_method: Optional[str] = Field(None, max_length=50)
    paid_on: Optional[date] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    target_type: PaymentTargetType
    target_id: int
    client_id: int
    account_id: int
    amount_paid: Decimal
    is_overpayment: bool
    payment_method: Optional[str]
    paid_on: date
    is_deleted: bool
    
    class Config:
        from_attributes = True


class ReconciliationResponse(BaseModel):
    """Outcome of recording or deleting a payment."""
    payment: PaymentResponse
    target_type: PaymentTargetType
    target_id: int
    total_paid: Decimal
    outstanding: Decimal
    raw_outstanding: Decimal
    is_overpayment: bool
    recommended_status: Optional[str]


class PayerHealthResponse(BaseModel):
    client_id: int
    health: str
    total_invoices: int
    overdue_invoices: int
    overdue_ratio: int
    total_outstanding: Decimal
