"""
Transaction schemas.

Shape only; ledger invariants (amounts, kind-specific accounts) are
checked by the transaction engine so they surface as typed ledger errors.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from backend.app.models.ledger_enums import Currency, TransactionKind, TransactionStatus, TransactionOrigin


class TransactionCreate(BaseModel):
    """Schema for recording a revenue, expense or transfer."""
    kind: TransactionKind
    amount: Decimal
    currency: Currency
    motif: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    source_account_id: Optional[int] = None
    destination_account_id: Optional[int] = None
    fee: Optional[Decimal] = None  # derived from the fee policy when omitted
    fee_account_id: Optional[int] = None
    status: TransactionStatus = TransactionStatus.SETTLED
    payment_method: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    rate_usd_to_cdf: Optional[Decimal] = Field(None, gt=0)
    rate_usd_to_cny: Optional[Decimal] = Field(None, gt=0)


class TransactionResponse(BaseModel):
    """Schema for displaying a transaction."""
    id: int
    kind: TransactionKind
    amount: Decimal
    currency: Currency
    motif: str
    category: Optional[str]
    source_account_id: Optional[int]
    destination_account_id: Optional[int]
    fee_account_id: Optional[int]
    fee: Decimal
    benefit: Decimal
    amount_cny: Optional[Decimal]
    rate_usd_to_cdf: Decimal
    rate_usd_to_cny: Decimal
    status: TransactionStatus
    origin: TransactionOrigin
    payment_method: Optional[str]
    notes: Optional[str]
    is_deleted: bool
    deleted_at: Optional[datetime]
    created_at: datetime
    
    class Config:
        from_attributes = True
