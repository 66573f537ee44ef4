"""
Pending-Transaction Approval Queue (Domain Logic).

Holds machine-proposed transactions until the originating channel
confirms or cancels them. At most one entry per channel is live:
creating a proposal expires the previous one in the same unit of work,
and a partial unique index on (organization, channel, status=PENDING)
rejects concurrent inserts. Expiry is evaluated lazily on read.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import Clock, as_utc, system_clock
from backend.app.core.config import settings
from backend.app.core.exceptions import ExpiredError, LedgerValidationError, ResourceNotFoundError
from backend.app.core.tenancy import TenantContext
from backend.app.db.unit_of_work import run_atomic
from backend.app.domain.agent.message_parser import ParsedIntent
from backend.app.domain.ledger.fee_policy import require_cents
from backend.app.domain.ledger.transaction_engine import TransactionEngine
from backend.app.models.agent_enums import PendingStatus
from backend.app.models.ledger_enums import TransactionKind, TransactionOrigin
from backend.app.models.pending_transaction import PendingTransaction
from backend.app.models.transaction import Transaction
from backend.app.schemas.transaction import TransactionCreate
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


class PendingTransactionQueue:
    
    def __init__(
        self,
        engine: TransactionEngine,
        clock: Clock = system_clock,
        ttl: Optional[timedelta] = None
    ):
        self.engine = engine
        self.accounts = engine.accounts
        self.clock = clock
        self.ttl = ttl or timedelta(minutes=settings.pending_transaction_ttl_minutes)
    
    def is_live(self, entry: PendingTransaction) -> bool:
        return entry.status == PendingStatus.PENDING and as_utc(entry.expires_at) > self.clock.now()
    
    async def _latest_pending(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        channel_id: str
    ) -> Optional[PendingTransaction]:
        result = await db.execute(
            select(PendingTransaction)
            .where(
                PendingTransaction.organization_id == ctx.organization_id,
                PendingTransaction.channel_id == channel_id,
                PendingTransaction.status == PendingStatus.PENDING
            )
            .order_by(desc(PendingTransaction.id))
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()
    
    async def create(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        channel_id: str,
        intent: ParsedIntent
    ) -> PendingTransaction:
        """
        Store a proposal for ``channel_id``, expiring any live one first.
        
        Raises:
            LedgerValidationError: Intent without a transaction kind or amount
        """
        if intent.kind is None or intent.kind == TransactionKind.TRANSFER:
            raise LedgerValidationError("Proposal must be a revenue or an expense", field="kind")
        if intent.amount is None or intent.amount <= 0:
            raise LedgerValidationError("Proposal requires a positive amount", field="amount", value=intent.amount)
        require_cents(intent.amount, "amount")
        
        async def work() -> PendingTransaction:
            now = self.clock.now()
            superseded = await db.execute(
                update(PendingTransaction)
                .where(
                    PendingTransaction.organization_id == ctx.organization_id,
                    PendingTransaction.channel_id == channel_id,
                    PendingTransaction.status == PendingStatus.PENDING
                )
                .values(status=PendingStatus.EXPIRED, resolved_at=now)
                .execution_options(synchronize_session="fetch")
            )
            
            entry = PendingTransaction(
                organization_id=ctx.organization_id,
                channel_id=channel_id,
                kind=intent.kind,
                amount=intent.amount,
                currency=intent.currency,
                motif=intent.motif,
                account_name=intent.account,
                category=intent.category,
                confidence=intent.confidence,
                status=PendingStatus.PENDING,
                created_at=now,
                expires_at=now + self.ttl
            )
            db.add(entry)
            await db.flush()
            
            await log_event(
                db, ctx, AuditAction.PENDING_CREATED, "pending_transaction", entry.id,
                metadata={"channel_id": channel_id, "superseded": superseded.rowcount}
            )
            return entry
        
        entry = await run_atomic(db, work)
        logger.info("Pending transaction created", extra={"pending_id": entry.id, "channel_id": channel_id})
        return entry
    
    async def current(self, db: AsyncSession, ctx: TenantContext, channel_id: str) -> Optional[PendingTransaction]:
        """The channel's live entry, or None."""
        entry = await self._latest_pending(db, ctx, channel_id)
        if entry is None or not self.is_live(entry):
            return None
        return entry
    
    async def confirm(self, db: AsyncSession, ctx: TenantContext, channel_id: str) -> Transaction:
        """
        Promote the channel's live entry into a real transaction.
        
        Raises:
            ResourceNotFoundError: No pending entry for the channel (or its
                proposed account does not resolve)
            ExpiredError: The entry passed its expiry; it is marked expired
        """
        async def work():
            entry = await self._latest_pending(db, ctx, channel_id)
            if entry is None:
                raise ResourceNotFoundError("PendingTransaction", channel_id)
            
            now = self.clock.now()
            if not self.is_live(entry):
                entry.status = PendingStatus.EXPIRED
                entry.resolved_at = now
                await db.flush()
                return None, entry
            
            account = await self.accounts.find_by_name(db, ctx, entry.account_name)
            data = TransactionCreate(
                kind=entry.kind,
                amount=entry.amount,
                currency=entry.currency,
                motif=entry.motif,
                category=entry.category,
                source_account_id=account.id if entry.kind == TransactionKind.EXPENSE else None,
                destination_account_id=account.id if entry.kind == TransactionKind.REVENUE else None,
                notes=f"Agent - {entry.category}" if entry.category else "Agent"
            )
            transaction = await self.engine.create_in_unit(db, ctx, data, origin=TransactionOrigin.AGENT)
            
            entry.status = PendingStatus.CONFIRMED
            entry.resolved_at = now
            entry.transaction_id = transaction.id
            await db.flush()
            
            await log_event(
                db, ctx, AuditAction.PENDING_CONFIRMED, "pending_transaction", entry.id,
                metadata={"transaction_id": transaction.id}
            )
            return transaction, entry
        
        transaction, entry = await run_atomic(db, work)
        if transaction is None:
            logger.info("Pending transaction expired", extra={"pending_id": entry.id, "channel_id": channel_id})
            raise ExpiredError("PendingTransaction", entry.id, as_utc(entry.expires_at))
        
        logger.info(
            "Pending transaction confirmed",
            extra={"pending_id": entry.id, "transaction_id": transaction.id}
        )
        return transaction
    
    async def cancel(self, db: AsyncSession, ctx: TenantContext, channel_id: str) -> Optional[PendingTransaction]:
        """
        Cancel the channel's live entry. Idempotent: returns None when there
        is nothing live to cancel.
        """
        async def work() -> Optional[PendingTransaction]:
            entry = await self._latest_pending(db, ctx, channel_id)
            if entry is None:
                return None
            
            entry.resolved_at = self.clock.now()
            if not self.is_live(entry):
                entry.status = PendingStatus.EXPIRED
                await db.flush()
                return None
            
            entry.status = PendingStatus.CANCELLED
            await db.flush()
            await log_event(db, ctx, AuditAction.PENDING_CANCELLED, "pending_transaction", entry.id)
            return entry
        
        entry = await run_atomic(db, work)
        if entry is not None:
            logger.info("Pending transaction cancelled", extra={"pending_id": entry.id, "channel_id": channel_id})
        return entry
