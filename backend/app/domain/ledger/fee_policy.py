"""
Fee policy and exchange-rate snapshots.

Fees are informational: they are stored on the transaction and only move
money when a fee account is explicitly wired.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from backend.app.core.config import settings
from backend.app.core.exceptions import LedgerValidationError
from backend.app.models.ledger_enums import Currency, TransactionKind

CENT = Decimal("0.01")

# Motifs mapped onto a fee bucket before falling back to keyword search
MOTIF_FEE_KEYS = {
    "commande": "order",
    "commande (facture)": "order",
    "transfert": "transfer",
    "transfert reçu": "transfer",
}


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def require_cents(amount: Decimal, field: str) -> Decimal:
    """
    Reject amounts the Numeric(18, 2) columns cannot hold exactly.
    
    Raises:
        LedgerValidationError: More than two decimal places
    """
    if amount is not None and (not amount.is_finite() or amount != amount.quantize(CENT)):
        raise LedgerValidationError(
            "Amount must have at most two decimal places", field=field, value=amount
        )
    return amount


@dataclass(frozen=True)
class FeePolicy:
    transfer_rate: Decimal
    order_rate: Decimal
    
    @classmethod
    def from_settings(cls) -> "FeePolicy":
        return cls(transfer_rate=settings.fee_rate_transfer, order_rate=settings.fee_rate_order)
    
    @staticmethod
    def fee_key(motif: str) -> Optional[str]:
        lowered = (motif or "").strip().lower()
        if lowered in MOTIF_FEE_KEYS:
            return MOTIF_FEE_KEYS[lowered]
        if "transfert" in lowered or "transfer" in lowered:
            return "transfer"
        if "commande" in lowered or "facture" in lowered or "order" in lowered:
            return "order"
        return None
    
    def fee_for(self, kind: TransactionKind, motif: str, amount: Decimal) -> Decimal:
        """Default fee when the caller supplies none. Only revenue carries a fee."""
        if kind != TransactionKind.REVENUE:
            return Decimal("0")
        rate = {"transfer": self.transfer_rate, "order": self.order_rate}.get(self.fee_key(motif))
        if rate is None:
            return Decimal("0")
        return quantize(amount * rate / Decimal("100"))
    
    @staticmethod
    def benefit(kind: TransactionKind, amount: Decimal, fee: Decimal) -> Decimal:
        if kind != TransactionKind.REVENUE:
            return Decimal("0")
        return amount - fee


@dataclass(frozen=True)
class RateSnapshot:
    """Fixed USD-based rates captured when a transaction is created."""
    usd_to_cdf: Decimal
    usd_to_cny: Decimal
    
    def __post_init__(self):
        for field, rate in (("rate_usd_to_cdf", self.usd_to_cdf), ("rate_usd_to_cny", self.usd_to_cny)):
            if rate is None or rate <= 0:
                raise LedgerValidationError("Exchange rate must be positive", field=field, value=rate)
    
    @classmethod
    def from_settings(cls, usd_to_cdf: Optional[Decimal] = None, usd_to_cny: Optional[Decimal] = None) -> "RateSnapshot":
        return cls(
            usd_to_cdf=settings.rate_usd_to_cdf if usd_to_cdf is None else usd_to_cdf,
            usd_to_cny=settings.rate_usd_to_cny if usd_to_cny is None else usd_to_cny,
        )
    
    def to_cny(self, amount: Decimal, currency: Currency) -> Decimal:
        if currency == Currency.CNY:
            return quantize(amount)
        if currency == Currency.USD:
            return quantize(amount * self.usd_to_cny)
        return quantize(amount / self.usd_to_cdf * self.usd_to_cny)
