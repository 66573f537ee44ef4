"""
Invoice State Machine (Domain Logic).

Enforces legal status transitions for invoices and quotes:

    DRAFT / PENDING → VALIDATED | CANCELLED
    VALIDATED → PAID (only when outstanding == 0) | CANCELLED
    PAID, CANCELLED → (terminal)

SENT and PARTIALLY_PAID are derived from the is_sent flag and payment
totals; they are never a transition target.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import AppException, InvalidTransitionError, ResourceNotFoundError
from backend.app.core.tenancy import TenantContext
from backend.app.db.unit_of_work import run_atomic
from backend.app.models.billing_enums import InvoiceStatus
from backend.app.models.invoice import Invoice
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[InvoiceStatus, FrozenSet[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.VALIDATED, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PENDING: frozenset({InvoiceStatus.VALIDATED, InvoiceStatus.CANCELLED}),
    InvoiceStatus.VALIDATED: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})


@dataclass
class TransitionResult:
    """Per-invoice outcome of a bulk transition."""
    invoice_id: int
    success: bool
    status: Optional[InvoiceStatus] = None
    error_code: Optional[str] = None
    details: dict = field(default_factory=dict)


def check_transition(invoice: Invoice, target: InvoiceStatus) -> None:
    """
    Raise if ``invoice`` may not move to ``target``.
    
    Raises:
        InvalidTransitionError: with current and requested states
    """
    current = invoice.status
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        reason = "terminal state" if current in TERMINAL_STATUSES else None
        raise InvalidTransitionError("Invoice", current.value, target.value, reason=reason)
    
    if target == InvoiceStatus.PAID and invoice.raw_outstanding > 0:
        raise InvalidTransitionError(
            "Invoice", current.value, target.value,
            reason=f"outstanding balance {invoice.outstanding}"
        )


def recommend_status(invoice: Invoice) -> Optional[InvoiceStatus]:
    """
    Status suggested by payment totals. Informational only; nothing is
    applied here.
    """
    if invoice.status != InvoiceStatus.VALIDATED:
        return None
    if invoice.raw_outstanding <= 0:
        return InvoiceStatus.PAID
    if invoice.amount_paid > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return None


class InvoiceStateMachine:
    
    async def get(self, db: AsyncSession, ctx: TenantContext, invoice_id: int) -> Invoice:
        result = await db.execute(
            select(Invoice).where(
                Invoice.id == invoice_id,
                Invoice.organization_id == ctx.organization_id
            ).with_for_update().execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise ResourceNotFoundError("Invoice", invoice_id)
        return invoice
    
    async def transition(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        invoice_id: int,
        target: InvoiceStatus
    ) -> Invoice:
        """
        Move one invoice to ``target``. On failure the invoice is untouched.
        
        Raises:
            ResourceNotFoundError: Unknown invoice
            InvalidTransitionError: Transition not allowed
        """
        async def work() -> Invoice:
            invoice = await self.get(db, ctx, invoice_id)
            previous = invoice.status
            check_transition(invoice, target)
            
            invoice.status = target
            await db.flush()
            await log_event(
                db, ctx, AuditAction.INVOICE_TRANSITIONED, "invoice", invoice.id,
                metadata={"from": previous.value, "to": target.value}
            )
            return invoice
        
        invoice = await run_atomic(db, work)
        logger.info("Invoice transitioned", extra={"invoice_id": invoice.id, "status": invoice.status.value})
        return invoice
    
    async def bulk_transition(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        invoice_ids: List[int],
        target: InvoiceStatus
    ) -> List[TransitionResult]:
        """
        Apply the single-invoice rule to each invoice independently. A
        failing invoice does not block the others.
        """
        results = []
        for invoice_id in invoice_ids:
            try:
                invoice = await self.transition(db, ctx, invoice_id, target)
            except AppException as exc:
                results.append(TransitionResult(
                    invoice_id=invoice_id,
                    success=False,
                    error_code=exc.error_code,
                    details=exc.details
                ))
            else:
                results.append(TransitionResult(invoice_id=invoice_id, success=True, status=invoice.status))
        return results
    
    async def mark_sent(self, db: AsyncSession, ctx: TenantContext, invoice_id: int) -> Invoice:
        """Set the sent flag. Only validated documents can be sent."""
        async def work() -> Invoice:
            invoice = await self.get(db, ctx, invoice_id)
            if invoice.status != InvoiceStatus.VALIDATED:
                raise InvalidTransitionError("Invoice", invoice.status.value, InvoiceStatus.SENT.value)
            invoice.is_sent = True
            await db.flush()
            await log_event(db, ctx, AuditAction.INVOICE_SENT, "invoice", invoice.id)
            return invoice
        
        return await run_atomic(db, work)
    
    @staticmethod
    def overdue(invoices: List[Invoice], today: date) -> List[Invoice]:
        return [invoice for invoice in invoices if invoice.is_overdue(today)]
