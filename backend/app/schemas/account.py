"""
Account and movement schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.ledger_enums import AccountType, Currency, MovementDirection


class AccountCreate(BaseModel):
    """Schema for opening an account."""
    name: str = Field(..., min_length=1, max_length=100)
    account_type: AccountType = AccountType.CASH
    currency: Currency
    opening_balance: Decimal = Decimal("0")
    allow_negative: bool = False


class AccountResponse(BaseModel):
    """Schema for displaying an account."""
    id: int
    name: str
    account_type: AccountType
    currency: Currency
    current_balance: Decimal
    allow_negative: bool
    is_active: bool
    created_at: datetime
    
    class Config:
        from_attributes = True


class MovementResponse(BaseModel):
    """Schema for displaying a movement."""
    id: int
    account_id: int
    direction: MovementDirection
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: Optional[str]
    transaction_id: Optional[int]
    payment_id: Optional[int]
    reversal_of_id: Optional[int]
    created_at: datetime
    
    class Config:
        from_attributes = True


class ReplayReportResponse(BaseModel):
    account_id: int
    stored_balance: Decimal
    replayed_balance: Decimal
    movement_count: int
    first_broken_movement_id: Optional[int]
    is_consistent: bool
    
    class Config:
        from_attributes = True
