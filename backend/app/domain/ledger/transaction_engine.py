"""
Transaction Engine (Domain Logic).

Records revenue, expense and transfer operations and drives the account
store and movement log as one unit of work.

Flow of ``create``:
1. Validate amount, fee and kind-specific account requirements
2. Lock every involved account (ascending id)
3. Derive fee, benefit and the exchange-rate snapshot
4. Persist the Transaction
5. Emit its movements (both transfer legs or none)
6. Audit
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import Clock, system_clock
from backend.app.core.exceptions import (
    InvalidTransitionError, LedgerValidationError, ResourceNotFoundError
)
from backend.app.core.tenancy import TenantContext
from backend.app.db.unit_of_work import run_atomic
from backend.app.domain.ledger.fee_policy import FeePolicy, RateSnapshot, require_cents
from backend.app.domain.ledger.movement_log import MovementLog
from backend.app.models.ledger_enums import MovementDirection, TransactionKind, TransactionOrigin
from backend.app.models.movement import Movement
from backend.app.models.transaction import Transaction
from backend.app.schemas.transaction import TransactionCreate
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


def validate_transaction(data: TransactionCreate) -> None:
    """
    Check the shape invariants of a transaction request.
    
    Raises:
        LedgerValidationError: naming the offending field
    """
    if data.amount is None or data.amount <= 0:
        raise LedgerValidationError("Amount must be positive", field="amount", value=data.amount)
    require_cents(data.amount, "amount")
    
    if data.fee is not None:
        if data.fee < 0:
            raise LedgerValidationError("Fee cannot be negative", field="fee", value=data.fee)
        require_cents(data.fee, "fee")
        if data.fee > data.amount:
            raise LedgerValidationError(
                "Fee cannot exceed amount", field="fee", value=data.fee,
                details={"amount": str(data.amount)}
            )
    
    if data.kind == TransactionKind.REVENUE:
        if data.destination_account_id is None:
            raise LedgerValidationError("Revenue requires a destination account", field="destination_account_id")
        if data.source_account_id is not None:
            raise LedgerValidationError("Revenue takes no source account", field="source_account_id")
    elif data.kind == TransactionKind.EXPENSE:
        if data.source_account_id is None:
            raise LedgerValidationError("Expense requires a source account", field="source_account_id")
        if data.destination_account_id is not None:
            raise LedgerValidationError("Expense takes no destination account", field="destination_account_id")
    elif data.kind == TransactionKind.TRANSFER:
        if data.source_account_id is None:
            raise LedgerValidationError("Transfer requires a source account", field="source_account_id")
        if data.destination_account_id is None:
            raise LedgerValidationError("Transfer requires a destination account", field="destination_account_id")
        if data.source_account_id == data.destination_account_id:
            raise LedgerValidationError(
                "Transfer accounts must differ", field="destination_account_id",
                value=data.destination_account_id
            )


def movement_legs(transaction: Transaction) -> List[Tuple[int, MovementDirection, Decimal]]:
    """Movements a transaction produces, in write order."""
    legs = []
    if transaction.kind in (TransactionKind.EXPENSE, TransactionKind.TRANSFER):
        legs.append((transaction.source_account_id, MovementDirection.DEBIT, transaction.amount))
    if transaction.kind in (TransactionKind.REVENUE, TransactionKind.TRANSFER):
        legs.append((transaction.destination_account_id, MovementDirection.CREDIT, transaction.amount))
    if transaction.fee_account_id is not None and transaction.fee > 0:
        legs.append((transaction.fee_account_id, MovementDirection.DEBIT, transaction.fee))
    return legs


class TransactionEngine:
    
    def __init__(
        self,
        movements: MovementLog,
        fee_policy: Optional[FeePolicy] = None,
        clock: Clock = system_clock
    ):
        self.movements = movements
        self.accounts = movements.accounts
        self.fee_policy = fee_policy or FeePolicy.from_settings()
        self.clock = clock
    
    async def create(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        data: TransactionCreate,
        origin: TransactionOrigin = TransactionOrigin.MANUAL
    ) -> Transaction:
        """Record a transaction and its movements atomically."""
        validate_transaction(data)
        return await run_atomic(db, lambda: self.create_in_unit(db, ctx, data, origin))
    
    async def create_in_unit(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        data: TransactionCreate,
        origin: TransactionOrigin = TransactionOrigin.MANUAL
    ) -> Transaction:
        """
        Body of ``create`` for callers that already own the atomic unit
        (pending-transaction promotion).
        
        Raises:
            LedgerValidationError: Bad shape, amount or currency mismatch
            ResourceNotFoundError: Unknown or inactive account
            InvalidStateError / ConflictError: From the account store
        """
        validate_transaction(data)
        
        involved = [
            account_id for account_id in
            (data.source_account_id, data.destination_account_id, data.fee_account_id)
            if account_id is not None
        ]
        locked = await self.accounts.lock_many(db, ctx, involved)
        for account_id, account in locked.items():
            if account.currency != data.currency:
                raise LedgerValidationError(
                    "Account currency does not match transaction currency",
                    field="currency", value=data.currency.value,
                    details={"account_id": account_id, "account_currency": account.currency.value}
                )
        
        fee = data.fee if data.fee is not None else self.fee_policy.fee_for(data.kind, data.motif, data.amount)
        rates = RateSnapshot.from_settings(data.rate_usd_to_cdf, data.rate_usd_to_cny)
        
        transaction = Transaction(
            organization_id=ctx.organization_id,
            kind=data.kind,
            amount=data.amount,
            currency=data.currency,
            motif=data.motif,
            category=data.category,
            source_account_id=data.source_account_id,
            destination_account_id=data.destination_account_id,
            fee_account_id=data.fee_account_id,
            fee=fee,
            benefit=self.fee_policy.benefit(data.kind, data.amount, fee),
            amount_cny=rates.to_cny(data.amount - fee, data.currency),
            rate_usd_to_cdf=rates.usd_to_cdf,
            rate_usd_to_cny=rates.usd_to_cny,
            status=data.status,
            origin=origin,
            payment_method=data.payment_method,
            notes=data.notes,
            created_by_id=ctx.actor_id,
            is_deleted=False
        )
        db.add(transaction)
        await db.flush()
        
        for account_id, direction, amount in movement_legs(transaction):
            await self.movements.record(
                db, ctx, account_id, direction, amount,
                description=f"{transaction.kind.value.capitalize()}: {transaction.motif}",
                transaction_id=transaction.id
            )
        
        await log_event(
            db, ctx, AuditAction.TRANSACTION_CREATED, "transaction", transaction.id,
            metadata={
                "kind": transaction.kind.value,
                "amount": str(transaction.amount),
                "currency": transaction.currency.value,
                "origin": origin.value
            }
        )
        logger.info(
            "Transaction created",
            extra={"transaction_id": transaction.id, "kind": transaction.kind.value, "amount": transaction.amount}
        )
        return transaction
    
    async def get(self, db: AsyncSession, ctx: TenantContext, transaction_id: int) -> Transaction:
        result = await db.execute(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.organization_id == ctx.organization_id
            )
        )
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise ResourceNotFoundError("Transaction", transaction_id)
        return transaction
    
    async def list_recent(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        limit: int = 10,
        include_deleted: bool = False
    ) -> List[Transaction]:
        query = select(Transaction).where(Transaction.organization_id == ctx.organization_id)
        if not include_deleted:
            query = query.where(Transaction.is_deleted.is_(False))
        result = await db.execute(query.order_by(desc(Transaction.id)).limit(limit))
        return list(result.scalars().all())
    
    async def delete(self, db: AsyncSession, ctx: TenantContext, transaction_id: int) -> Transaction:
        """
        Undo a transaction by writing the exact inverse of each of its
        movements, then flag it deleted.
        
        Raises:
            ResourceNotFoundError: Unknown transaction
            InvalidTransitionError: Already deleted
        """
        async def work() -> Transaction:
            transaction = await self.get(db, ctx, transaction_id)
            if transaction.is_deleted:
                raise InvalidTransitionError("Transaction", "deleted", "deleted")
            
            result = await db.execute(
                select(Movement)
                .where(
                    Movement.transaction_id == transaction.id,
                    Movement.organization_id == ctx.organization_id,
                    Movement.reversal_of_id.is_(None)
                )
                .order_by(Movement.id)
            )
            originals = result.scalars().all()
            await self.accounts.lock_many(
                db, ctx, [m.account_id for m in originals], require_active=False
            )
            for movement in originals:
                await self.movements.reverse(
                    db, ctx, movement.id,
                    description=f"Deletion of transaction {transaction.id}"
                )
            
            transaction.is_deleted = True
            transaction.deleted_at = self.clock.now()
            await db.flush()
            
            await log_event(
                db, ctx, AuditAction.TRANSACTION_DELETED, "transaction", transaction.id,
                metadata={"reversed_movements": [m.id for m in originals]}
            )
            return transaction
        
        transaction = await run_atomic(db, work)
        logger.info("Transaction deleted", extra={"transaction_id": transaction.id})
        return transaction
