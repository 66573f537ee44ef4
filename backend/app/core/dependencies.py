"""
Request dependencies for FastAPI.

Provides the tenant context every ledger route requires and the shared
ledger services the routes delegate to.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from backend.app.core.clock import Clock, system_clock
from backend.app.core.config import settings
from backend.app.core.exceptions import TenantContextError
from backend.app.core.tenancy import TenantContext
from backend.app.domain.agent.channel_handler import ChannelHandler
from backend.app.domain.agent.pending_queue import PendingTransactionQueue
from backend.app.domain.billing.invoice_state_machine import InvoiceStateMachine
from backend.app.domain.billing.payment_reconciliation import PaymentReconciliation
from backend.app.domain.ledger.account_admin import AccountAdmin
from backend.app.domain.ledger.account_store import AccountStore
from backend.app.domain.ledger.fee_policy import FeePolicy
from backend.app.domain.ledger.movement_log import MovementLog
from backend.app.domain.ledger.transaction_engine import TransactionEngine


async def get_tenant_context(
    x_organization_id: Optional[str] = Header(None),
    x_actor_id: Optional[str] = Header(None),
    x_actor_username: Optional[str] = Header(None),
) -> TenantContext:
    """
    Build the caller's tenant context from request headers.
    
    Identity is established upstream; this layer only scopes data.
    
    Raises:
        TenantContextError: 400 if the organization header is missing or not an integer
    """
    if not x_organization_id:
        raise TenantContextError("X-Organization-ID header is required")
    try:
        organization_id = int(x_organization_id)
    except ValueError:
        raise TenantContextError("X-Organization-ID must be an integer")
    
    actor_id = None
    if x_actor_id:
        try:
            actor_id = int(x_actor_id)
        except ValueError:
            raise TenantContextError("X-Actor-ID must be an integer")
    
    return TenantContext(
        organization_id=organization_id,
        actor_id=actor_id,
        actor_username=x_actor_username
    )


@dataclass
class LedgerServices:
    """Wired ledger components sharing one account store and clock."""
    clock: Clock
    accounts: AccountStore
    movements: MovementLog
    account_admin: AccountAdmin
    transactions: TransactionEngine
    invoices: InvoiceStateMachine
    payments: PaymentReconciliation
    pending: PendingTransactionQueue
    channels: ChannelHandler


def build_services(clock: Clock = system_clock) -> LedgerServices:
    accounts = AccountStore(settings.negative_balance_account_types)
    movements = MovementLog(accounts)
    transactions = TransactionEngine(movements, FeePolicy.from_settings(), clock=clock)
    pending = PendingTransactionQueue(transactions, clock=clock)
    return LedgerServices(
        clock=clock,
        accounts=accounts,
        movements=movements,
        account_admin=AccountAdmin(movements),
        transactions=transactions,
        invoices=InvoiceStateMachine(),
        payments=PaymentReconciliation(movements, settings.overpayment_margin, clock=clock),
        pending=pending,
        channels=ChannelHandler(pending)
    )


_services = build_services()


def get_services() -> LedgerServices:
    return _services
