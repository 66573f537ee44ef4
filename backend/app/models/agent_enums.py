"""
Conversational agent enumerations.
"""

import enum


class PendingStatus(str, enum.Enum):
    """
    Pending transaction status enumeration.
    
    Status flow:
        PENDING → CONFIRMED | CANCELLED | EXPIRED (all terminal)
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ReplyKind(str, enum.Enum):
    """Structured reply kinds returned to the messaging transport."""
    PROPOSAL = "proposal"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    NOTHING_PENDING = "nothing_pending"
    EXPIRED = "expired"
    CLARIFICATION = "clarification"
    BALANCES = "balances"
    HISTORY = "history"
    HELP = "help"
    UNKNOWN_COMMAND = "unknown_command"
