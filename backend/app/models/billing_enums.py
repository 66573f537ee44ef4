"""
Billing enumerations: invoices, payments and parcels.
"""

import enum


class InvoiceStatus(str, enum.Enum):
    """
    Invoice status enumeration.
    
    Status flow:
        DRAFT / PENDING → VALIDATED | CANCELLED
        VALIDATED → PAID (outstanding == 0) | CANCELLED
        PAID, CANCELLED are terminal
    
    SENT and PARTIALLY_PAID are derived display states, never stored.
    """
    DRAFT = "draft"
    PENDING = "pending"
    VALIDATED = "validated"
    SENT = "sent"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    CANCELLED = "cancelled"


class DocumentType(str, enum.Enum):
    INVOICE = "invoice"
    QUOTE = "quote"


class PaymentTargetType(str, enum.Enum):
    """What a payment is recorded against."""
    INVOICE = "invoice"
    PARCEL = "parcel"


class ParcelPaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
