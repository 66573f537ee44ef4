"""
Payment Reconciliation (Domain Logic).

Records payments against invoices or parcels: credits the receiving
account through the movement log, recomputes the target's paid and
outstanding amounts from its live payments, and emits a status
recommendation for the invoice state machine without applying it.

Overpayment is accepted up to settings.overpayment_margin and always
flagged. Outstanding is floored at zero for display; the raw (possibly
negative) figure is kept for audit.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import Clock, system_clock
from backend.app.core.config import settings
from backend.app.core.exceptions import (
    InvalidTransitionError, LedgerValidationError, ResourceNotFoundError
)
from backend.app.core.tenancy import TenantContext
from backend.app.db.unit_of_work import run_atomic
from backend.app.domain.billing.invoice_state_machine import recommend_status
from backend.app.domain.ledger.fee_policy import require_cents
from backend.app.domain.ledger.movement_log import MovementLog
from backend.app.models.billing_enums import InvoiceStatus, ParcelPaymentStatus, PaymentTargetType
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.ledger_enums import MovementDirection
from backend.app.models.movement import Movement
from backend.app.models.parcel import Parcel
from backend.app.models.payment import Payment
from backend.app.schemas.billing import PaymentCreate
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

Target = Union[Invoice, Parcel]


@dataclass
class ReconciliationResult:
    payment: Payment
    target_type: PaymentTargetType
    target_id: int
    total_paid: Decimal
    outstanding: Decimal
    raw_outstanding: Decimal
    is_overpayment: bool
    recommended_status: Optional[str]


def parcel_payment_status(parcel: Parcel) -> ParcelPaymentStatus:
    if parcel.amount_paid <= 0:
        return ParcelPaymentStatus.UNPAID
    if parcel.raw_outstanding > 0:
        return ParcelPaymentStatus.PARTIAL
    return ParcelPaymentStatus.PAID


def _total_due(target: Target) -> Decimal:
    return target.total_amount if isinstance(target, Invoice) else target.amount_due


class PaymentReconciliation:
    
    def __init__(
        self,
        movements: MovementLog,
        overpayment_margin: Optional[Decimal] = None,
        clock: Clock = system_clock
    ):
        self.movements = movements
        self.accounts = movements.accounts
        self.overpayment_margin = settings.overpayment_margin if overpayment_margin is None else overpayment_margin
        self.clock = clock
    
    async def _load_target(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        target_type: PaymentTargetType,
        target_id: int
    ) -> Target:
        model = Invoice if target_type == PaymentTargetType.INVOICE else Parcel
        result = await db.execute(
            select(model)
            .where(model.id == target_id, model.organization_id == ctx.organization_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        target = result.scalar_one_or_none()
        if not target:
            raise ResourceNotFoundError(model.__name__, target_id)
        return target
    
    async def _recompute(self, db: AsyncSession, target: Target) -> None:
        """Derive amount_paid from the target's live payments."""
        column = Payment.invoice_id if isinstance(target, Invoice) else Payment.parcel_id
        result = await db.execute(
            select(func.coalesce(func.sum(Payment.amount_paid), 0)).where(
                column == target.id,
                Payment.organization_id == target.organization_id,
                Payment.is_deleted.is_(False)
            )
        )
        target.amount_paid = Decimal(str(result.scalar_one()))
        if isinstance(target, Parcel):
            target.payment_status = parcel_payment_status(target)
        await db.flush()
    
    def _result(self, payment: Payment, target: Target) -> ReconciliationResult:
        if isinstance(target, Invoice):
            recommended = recommend_status(target)
        else:
            recommended = target.payment_status
        return ReconciliationResult(
            payment=payment,
            target_type=payment.target_type,
            target_id=target.id,
            total_paid=target.amount_paid,
            outstanding=target.outstanding,
            raw_outstanding=target.raw_outstanding,
            is_overpayment=target.raw_outstanding < 0,
            recommended_status=recommended.value if recommended else None
        )
    
    async def record_payment(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        data: PaymentCreate
    ) -> ReconciliationResult:
        """
        Record a payment and credit the receiving account atomically.
        
        Raises:
            LedgerValidationError: Non-positive amount, payer/currency mismatch,
                cancelled target, or overpayment beyond the allowed margin
            ResourceNotFoundError: Unknown target, client or account
        """
        if data.amount_paid is None or data.amount_paid <= 0:
            raise LedgerValidationError("Amount paid must be positive", field="amount_paid", value=data.amount_paid)
        require_cents(data.amount_paid, "amount_paid")
        
        async def work() -> ReconciliationResult:
            target = await self._load_target(db, ctx, data.target_type, data.target_id)
            
            client = await db.execute(
                select(Client.id).where(
                    Client.id == data.client_id,
                    Client.organization_id == ctx.organization_id
                )
            )
            if client.scalar_one_or_none() is None:
                raise ResourceNotFoundError("Client", data.client_id)
            if target.client_id != data.client_id:
                raise LedgerValidationError(
                    "Payer does not own the payment target", field="client_id", value=data.client_id,
                    details={"expected": target.client_id}
                )
            
            if isinstance(target, Invoice) and target.status == InvoiceStatus.CANCELLED:
                raise LedgerValidationError("Cannot pay a cancelled invoice", field="target_id", value=target.id)
            
            account = await self.accounts.lock(db, ctx, data.account_id)
            if account.currency != target.currency:
                raise LedgerValidationError(
                    "Receiving account currency does not match target currency",
                    field="account_id", value=data.account_id,
                    details={"account_currency": account.currency.value, "target_currency": target.currency.value}
                )
            
            excess = target.amount_paid + data.amount_paid - _total_due(target)
            if excess > 0 and self.overpayment_margin is not None and excess > self.overpayment_margin:
                raise LedgerValidationError(
                    "Payment exceeds the allowed overpayment margin", field="amount_paid", value=data.amount_paid,
                    details={"excess": str(excess), "margin": str(self.overpayment_margin)}
                )
            
            payment = Payment(
                organization_id=ctx.organization_id,
                target_type=data.target_type,
                invoice_id=target.id if data.target_type == PaymentTargetType.INVOICE else None,
                parcel_id=target.id if data.target_type == PaymentTargetType.PARCEL else None,
                client_id=data.client_id,
                account_id=data.account_id,
                amount_paid=data.amount_paid,
                is_overpayment=excess > 0,
                payment_method=data.payment_method,
                paid_on=data.paid_on or self.clock.now().date(),
                notes=data.notes,
                created_by_id=ctx.actor_id,
                is_deleted=False
            )
            db.add(payment)
            await db.flush()
            
            await self.movements.record(
                db, ctx, data.account_id, MovementDirection.CREDIT, data.amount_paid,
                description=f"Payment {payment.id} for {data.target_type.value} {target.id}",
                payment_id=payment.id
            )
            await self._recompute(db, target)
            
            await log_event(
                db, ctx, AuditAction.PAYMENT_RECORDED, "payment", payment.id,
                metadata={
                    "target_type": data.target_type.value,
                    "target_id": target.id,
                    "amount": str(data.amount_paid),
                    "overpayment": excess > 0
                }
            )
            return self._result(payment, target)
        
        result = await run_atomic(db, work)
        logger.info(
            "Payment recorded",
            extra={
                "payment_id": result.payment.id,
                "target_type": result.target_type.value,
                "target_id": result.target_id,
                "outstanding": result.outstanding,
                "overpayment": result.is_overpayment
            }
        )
        return result
    
    async def delete_payment(self, db: AsyncSession, ctx: TenantContext, payment_id: int) -> ReconciliationResult:
        """
        Reverse a payment's credit and re-derive its target's totals.
        
        Raises:
            ResourceNotFoundError: Unknown payment
            InvalidTransitionError: Payment already deleted
        """
        async def work() -> ReconciliationResult:
            result = await db.execute(
                select(Payment).where(
                    Payment.id == payment_id,
                    Payment.organization_id == ctx.organization_id
                )
            )
            payment = result.scalar_one_or_none()
            if not payment:
                raise ResourceNotFoundError("Payment", payment_id)
            if payment.is_deleted:
                raise InvalidTransitionError("Payment", "deleted", "deleted")
            
            target = await self._load_target(db, ctx, payment.target_type, payment.target_id)
            
            movement_ids = await db.execute(
                select(Movement.id).where(
                    Movement.payment_id == payment.id,
                    Movement.organization_id == ctx.organization_id,
                    Movement.reversal_of_id.is_(None)
                )
            )
            for movement_id in movement_ids.scalars().all():
                await self.movements.reverse(db, ctx, movement_id, description=f"Deletion of payment {payment.id}")
            
            payment.is_deleted = True
            payment.deleted_at = self.clock.now()
            await db.flush()
            await self._recompute(db, target)
            
            await log_event(
                db, ctx, AuditAction.PAYMENT_DELETED, "payment", payment.id,
                metadata={"target_type": payment.target_type.value, "target_id": target.id}
            )
            return self._result(payment, target)
        
        result = await run_atomic(db, work)
        logger.info("Payment deleted", extra={"payment_id": payment_id, "outstanding": result.outstanding})
        return result
