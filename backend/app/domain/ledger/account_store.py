"""
Account Store (Domain Logic).

Owns account balances. A balance only changes through ``apply_delta``,
which must run in the same unit of work as the movement explaining it.
Writes use a compare-and-swap on the previously read balance, on top of a
row lock where the backend supports SELECT ... FOR UPDATE.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    ConflictError, InvalidStateError, LedgerValidationError, ResourceNotFoundError
)
from backend.app.core.tenancy import TenantContext
from backend.app.models.account import Account
from backend.app.models.ledger_enums import AccountType

logger = logging.getLogger(__name__)


class AccountStore:
    
    def __init__(self, negative_balance_types: Optional[Iterable[str]] = None):
        types = settings.negative_balance_account_types if negative_balance_types is None else negative_balance_types
        self.negative_balance_types = {AccountType(t) for t in types}
    
    def allows_negative(self, account: Account) -> bool:
        return account.allow_negative or account.account_type in self.negative_balance_types
    
    async def get(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        account_id: int,
        require_active: bool = False
    ) -> Account:
        """
        Fetch an account of the caller's organization.
        
        Raises:
            ResourceNotFoundError: Unknown account, other tenant's account, or
                inactive account when require_active is set
        """
        result = await db.execute(
            select(Account).where(
                Account.id == account_id,
                Account.organization_id == ctx.organization_id
            )
        )
        account = result.scalar_one_or_none()
        if not account or (require_active and not account.is_active):
            raise ResourceNotFoundError("Account", account_id)
        return account
    
    async def lock(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        account_id: int,
        require_active: bool = True
    ) -> Account:
        """Re-read an account with a row lock, bypassing identity-map state."""
        result = await db.execute(
            select(Account)
            .where(
                Account.id == account_id,
                Account.organization_id == ctx.organization_id
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        account = result.scalar_one_or_none()
        if not account or (require_active and not account.is_active):
            raise ResourceNotFoundError("Account", account_id)
        return account
    
    async def lock_many(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        account_ids: Iterable[int],
        require_active: bool = True
    ) -> dict[int, Account]:
        """Lock several accounts in ascending id order so two writers never deadlock."""
        locked = {}
        for account_id in sorted(set(account_ids)):
            locked[account_id] = await self.lock(db, ctx, account_id, require_active=require_active)
        return locked
    
    async def find_by_name(self, db: AsyncSession, ctx: TenantContext, name: str) -> Account:
        """
        Resolve an active account by name, exact (case-insensitive) match
        first, then a unique partial match.
        """
        base = select(Account).where(
            Account.organization_id == ctx.organization_id,
            Account.is_active.is_(True)
        )
        result = await db.execute(base.where(func.lower(Account.name) == name.lower()))
        account = result.scalars().first()
        if account:
            return account
        
        result = await db.execute(base.where(Account.name.ilike(f"%{name}%")))
        candidates = result.scalars().all()
        if len(candidates) != 1:
            raise ResourceNotFoundError("Account", name)
        return candidates[0]
    
    async def get_balance(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        account_id: int,
        require_active: bool = True
    ) -> Decimal:
        account = await self.get(db, ctx, account_id, require_active=require_active)
        return account.current_balance
    
    async def list_accounts(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        active_only: bool = True
    ) -> List[Account]:
        query = select(Account).where(Account.organization_id == ctx.organization_id)
        if active_only:
            query = query.where(Account.is_active.is_(True))
        result = await db.execute(query.order_by(Account.current_balance.desc(), Account.id))
        return list(result.scalars().all())
    
    async def apply_delta(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        account_id: int,
        signed_amount: Decimal,
        expected_balance: Optional[Decimal] = None,
        require_active: bool = True
    ) -> Decimal:
        """
        Move an account balance by ``signed_amount``.
        
        Args:
            db: Database session inside an atomic unit
            ctx: Tenant context
            account_id: Account to mutate
            signed_amount: Positive to credit, negative to debit
            expected_balance: Balance the caller based its computation on;
                defaults to a fresh locked read
            require_active: Reject inactive accounts
        
        Returns:
            The new balance
        
        Raises:
            InvalidStateError: Result would be negative on an account whose
                policy forbids it
            ConflictError: The stored balance no longer equals expected_balance
        """
        if signed_amount == 0:
            raise LedgerValidationError("Balance delta must be non-zero", field="amount", value=signed_amount)
        
        account = await self.lock(db, ctx, account_id, require_active=require_active)
        before = account.current_balance if expected_balance is None else expected_balance
        after = before + signed_amount
        
        if after < 0 and not self.allows_negative(account):
            raise InvalidStateError(
                "Balance would become negative",
                details={
                    "account_id": account_id,
                    "current": str(before),
                    "delta": str(signed_amount),
                    "resulting": str(after)
                }
            )
        
        result = await db.execute(
            update(Account)
            .where(
                Account.id == account_id,
                Account.organization_id == ctx.organization_id,
                Account.current_balance == before
            )
            .values(current_balance=after)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Balance compare-and-swap failed",
                extra={"account_id": account_id, "expected_balance": before}
            )
            raise ConflictError(
                "Account balance changed concurrently",
                details={"account_id": account_id, "expected": str(before)}
            )
        
        set_committed_value(account, "current_balance", after)
        logger.info(
            "Balance updated",
            extra={"account_id": account_id, "balance_before": before, "balance_after": after}
        )
        return after
