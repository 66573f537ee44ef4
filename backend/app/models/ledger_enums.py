"""
Ledger enumerations: accounts, movements and transactions.
"""

import enum


class Currency(str, enum.Enum):
    """Currencies an account or transaction may be held in."""
    USD = "USD"
    CDF = "CDF"
    CNY = "CNY"


class AccountType(str, enum.Enum):
    """
    Account type enumeration.
    
    The non-negative balance policy is configured per type
    (see settings.negative_balance_account_types).
    """
    CASH = "cash"
    MOBILE_MONEY = "mobile_money"
    BANK = "bank"
    OPERATIONAL = "operational"


class MovementDirection(str, enum.Enum):
    """Movement direction enumeration."""
    CREDIT = "credit"  # Money entering the account
    DEBIT = "debit"  # Money leaving the account

    @property
    def opposite(self) -> "MovementDirection":
        return MovementDirection.DEBIT if self is MovementDirection.CREDIT else MovementDirection.CREDIT


class TransactionKind(str, enum.Enum):
    """
    Transaction kind enumeration.
    
    Account requirements:
        REVENUE → destination
        EXPENSE → source
        TRANSFER → source and destination (distinct)
    """
    REVENUE = "revenue"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    SETTLED = "settled"


class TransactionOrigin(str, enum.Enum):
    MANUAL = "manual"  # Entered through the forms layer
    AGENT = "agent"  # Promoted from an approved pending proposal
