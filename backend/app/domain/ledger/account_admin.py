"""
Account administration.

Accounts are opened with their initial balance recorded as an opening
movement (so replay from zero reproduces it) and soft-disabled instead
of deleted.
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidTransitionError, LedgerValidationError
from backend.app.core.tenancy import TenantContext
from backend.app.db.unit_of_work import run_atomic
from backend.app.domain.ledger.fee_policy import require_cents
from backend.app.domain.ledger.movement_log import MovementLog
from backend.app.models.account import Account
from backend.app.models.ledger_enums import MovementDirection
from backend.app.schemas.account import AccountCreate
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


class AccountAdmin:
    
    def __init__(self, movements: MovementLog):
        self.movements = movements
        self.accounts = movements.accounts
    
    async def open_account(self, db: AsyncSession, ctx: TenantContext, data: AccountCreate) -> Account:
        if data.opening_balance < 0:
            raise LedgerValidationError(
                "Opening balance cannot be negative", field="opening_balance", value=data.opening_balance
            )
        require_cents(data.opening_balance, "opening_balance")
        
        async def work() -> Account:
            duplicate = await db.execute(
                select(Account.id).where(
                    Account.organization_id == ctx.organization_id,
                    Account.name == data.name
                )
            )
            if duplicate.scalar_one_or_none() is not None:
                raise LedgerValidationError("Account name already used", field="name", value=data.name)
            
            account = Account(
                organization_id=ctx.organization_id,
                name=data.name,
                account_type=data.account_type,
                currency=data.currency,
                current_balance=Decimal("0"),
                allow_negative=data.allow_negative,
                is_active=True
            )
            db.add(account)
            await db.flush()
            
            if data.opening_balance > 0:
                await self.movements.record(
                    db, ctx, account.id, MovementDirection.CREDIT, data.opening_balance,
                    description="Opening balance"
                )
            
            await log_event(
                db, ctx, AuditAction.ACCOUNT_CREATED, "account", account.id,
                metadata={"name": account.name, "currency": account.currency.value}
            )
            return account
        
        account = await run_atomic(db, work)
        logger.info("Account opened", extra={"account_id": account.id, "organization_id": ctx.organization_id})
        return account
    
    async def deactivate(self, db: AsyncSession, ctx: TenantContext, account_id: int) -> Account:
        async def work() -> Account:
            account = await self.accounts.lock(db, ctx, account_id, require_active=False)
            if not account.is_active:
                raise InvalidTransitionError("Account", "inactive", "inactive")
            account.is_active = False
            await db.flush()
            await log_event(db, ctx, AuditAction.ACCOUNT_DEACTIVATED, "account", account.id)
            return account
        
        return await run_atomic(db, work)
