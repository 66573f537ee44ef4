"""
Movement Log (Domain Logic).

Append-only ledger of balance-affecting events. Each write reads the
account under lock, derives balance_after deterministically and persists
the movement together with the account's new balance.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    InvalidTransitionError, LedgerValidationError, ResourceNotFoundError
)
from backend.app.core.tenancy import TenantContext
from backend.app.domain.ledger.account_store import AccountStore
from backend.app.domain.ledger.fee_policy import require_cents
from backend.app.models.ledger_enums import MovementDirection
from backend.app.models.movement import Movement

logger = logging.getLogger(__name__)


def balance_after(direction: MovementDirection, balance_before: Decimal, amount: Decimal) -> Decimal:
    if direction == MovementDirection.CREDIT:
        return balance_before + amount
    return balance_before - amount


@dataclass
class ReplayReport:
    """Outcome of replaying an account's movements from zero."""
    account_id: int
    stored_balance: Decimal
    replayed_balance: Decimal
    movement_count: int
    first_broken_movement_id: Optional[int] = None
    
    @property
    def is_consistent(self) -> bool:
        return self.first_broken_movement_id is None and self.stored_balance == self.replayed_balance


class MovementLog:
    
    def __init__(self, accounts: AccountStore):
        self.accounts = accounts
    
    async def record(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        account_id: int,
        direction: MovementDirection,
        amount: Decimal,
        description: Optional[str] = None,
        transaction_id: Optional[int] = None,
        payment_id: Optional[int] = None,
        reversal_of_id: Optional[int] = None
    ) -> Movement:
        """
        Append a movement and apply it to the account balance.
        
        Must be called inside an atomic unit. Reversals are allowed on
        inactive accounts; new activity is not.
        
        Raises:
            LedgerValidationError: amount <= 0 or finer than a cent
            ResourceNotFoundError: Unknown (or inactive) account
            InvalidStateError / ConflictError: From the account store
        """
        if amount is None or amount <= 0:
            raise LedgerValidationError("Movement amount must be positive", field="amount", value=amount)
        require_cents(amount, "amount")
        
        require_active = reversal_of_id is None
        account = await self.accounts.lock(db, ctx, account_id, require_active=require_active)
        before = account.current_balance
        after = balance_after(direction, before, amount)
        
        await self.accounts.apply_delta(
            db, ctx, account_id, after - before,
            expected_balance=before,
            require_active=require_active
        )
        
        movement = Movement(
            organization_id=ctx.organization_id,
            account_id=account_id,
            direction=direction,
            amount=amount,
            balance_before=before,
            balance_after=after,
            description=description,
            transaction_id=transaction_id,
            payment_id=payment_id,
            reversal_of_id=reversal_of_id
        )
        db.add(movement)
        await db.flush()
        
        logger.info(
            "Movement recorded",
            extra={
                "movement_id": movement.id,
                "account_id": account_id,
                "direction": direction.value,
                "amount": amount,
                "reversal_of_id": reversal_of_id
            }
        )
        return movement
    
    async def get(self, db: AsyncSession, ctx: TenantContext, movement_id: int) -> Movement:
        result = await db.execute(
            select(Movement).where(
                Movement.id == movement_id,
                Movement.organization_id == ctx.organization_id
            )
        )
        movement = result.scalar_one_or_none()
        if not movement:
            raise ResourceNotFoundError("Movement", movement_id)
        return movement
    
    async def reverse(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        original_movement_id: int,
        description: Optional[str] = None
    ) -> Movement:
        """
        Write the inverse of a movement. The original is never touched.
        
        Raises:
            ResourceNotFoundError: Unknown movement
            InvalidTransitionError: Movement already reversed, or is itself a reversal
        """
        original = await self.get(db, ctx, original_movement_id)
        
        if original.reversal_of_id is not None:
            raise InvalidTransitionError("Movement", "reversal", "reversed", reason="reversals are final")
        
        existing = await db.execute(
            select(Movement.id).where(Movement.reversal_of_id == original.id)
        )
        if existing.scalar_one_or_none() is not None:
            raise InvalidTransitionError("Movement", "reversed", "reversed")
        
        return await self.record(
            db, ctx,
            account_id=original.account_id,
            direction=original.direction.opposite,
            amount=original.amount,
            description=description or f"Reversal of movement {original.id}",
            transaction_id=original.transaction_id,
            payment_id=original.payment_id,
            reversal_of_id=original.id
        )
    
    async def history(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        account_id: int,
        limit: int = 50
    ) -> List[Movement]:
        """Movements of one account, newest first."""
        await self.accounts.get(db, ctx, account_id)
        result = await db.execute(
            select(Movement)
            .where(
                Movement.account_id == account_id,
                Movement.organization_id == ctx.organization_id
            )
            .order_by(desc(Movement.id))
            .limit(limit)
        )
        return list(result.scalars().all())
    
    async def verify(self, db: AsyncSession, ctx: TenantContext, account_id: int) -> ReplayReport:
        """
        Replay an account's movements in insertion order from zero and
        compare with the stored balance.
        """
        account = await self.accounts.get(db, ctx, account_id)
        result = await db.execute(
            select(Movement)
            .where(
                Movement.account_id == account_id,
                Movement.organization_id == ctx.organization_id
            )
            .order_by(Movement.id)
        )
        movements = result.scalars().all()
        
        running = Decimal("0")
        broken_at = None
        for movement in movements:
            chained = movement.balance_before == running
            balanced = movement.balance_after == balance_after(
                movement.direction, movement.balance_before, movement.amount
            )
            if broken_at is None and not (chained and balanced):
                broken_at = movement.id
            running = balance_after(movement.direction, running, movement.amount)
        
        return ReplayReport(
            account_id=account_id,
            stored_balance=account.current_balance,
            replayed_balance=running,
            movement_count=len(movements),
            first_broken_movement_id=broken_at
        )
