"""
Conversational channel schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from backend.app.models.agent_enums import PendingStatus, ReplyKind
from backend.app.models.ledger_enums import Currency, TransactionKind


class ChannelMessage(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)


class PendingTransactionResponse(BaseModel):
    id: int
    channel_id: str
    kind: TransactionKind
    amount: Decimal
    currency: Currency
    motif: str
    account_name: str
    category: Optional[str]
    confidence: float
    status: PendingStatus
    created_at: datetime
    expires_at: datetime
    transaction_id: Optional[int]
    
    class Config:
        from_attributes = True


class ChannelReplyResponse(BaseModel):
    """Structured reply; rendering it for the transport is the caller's job."""
    kind: ReplyKind
    data: Dict[str, Any] = {}
