"""
Billing Service (Domain Logic).

Creates and reads the documents payments are reconciled against:
clients, invoices/quotes and parcels. Status changes go through the
invoice state machine and paid totals through payment reconciliation;
nothing here touches either.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import LedgerValidationError, ResourceNotFoundError
from backend.app.core.tenancy import TenantContext
from backend.app.db.unit_of_work import run_atomic
from backend.app.domain.ledger.fee_policy import require_cents
from backend.app.models.billing_enums import InvoiceStatus, ParcelPaymentStatus
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.parcel import Parcel
from backend.app.schemas.billing import ClientCreate, InvoiceCreate, ParcelCreate
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


class BillingService:
    
    @staticmethod
    async def get_client(db: AsyncSession, ctx: TenantContext, client_id: int) -> Client:
        result = await db.execute(
            select(Client).where(Client.id == client_id, Client.organization_id == ctx.organization_id)
        )
        client = result.scalar_one_or_none()
        if not client:
            raise ResourceNotFoundError("Client", client_id)
        return client
    
    @staticmethod
    async def create_client(db: AsyncSession, ctx: TenantContext, data: ClientCreate) -> Client:
        async def work() -> Client:
            client = Client(
                organization_id=ctx.organization_id,
                name=data.name,
                phone=data.phone,
                is_active=True
            )
            db.add(client)
            await db.flush()
            await log_event(db, ctx, AuditAction.CLIENT_CREATED, "client", client.id)
            return client
        
        return await run_atomic(db, work)
    
    @staticmethod
    async def create_invoice(db: AsyncSession, ctx: TenantContext, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice or quote in DRAFT.
        
        Raises:
            ResourceNotFoundError: Unknown client
            LedgerValidationError: Number already used in the organization, or a
                total finer than a cent
        """
        require_cents(data.total_amount, "total_amount")
        
        async def work() -> Invoice:
            await BillingService.get_client(db, ctx, data.client_id)
            
            duplicate = await db.execute(
                select(Invoice.id).where(
                    Invoice.organization_id == ctx.organization_id,
                    Invoice.number == data.number
                )
            )
            if duplicate.scalar_one_or_none() is not None:
                raise LedgerValidationError("Invoice number already used", field="number", value=data.number)
            
            invoice = Invoice(
                organization_id=ctx.organization_id,
                number=data.number,
                document_type=data.document_type,
                client_id=data.client_id,
                total_amount=data.total_amount,
                currency=data.currency,
                due_date=data.due_date,
                status=InvoiceStatus.DRAFT,
                is_sent=False
            )
            db.add(invoice)
            await db.flush()
            await log_event(
                db, ctx, AuditAction.INVOICE_CREATED, "invoice", invoice.id,
                metadata={"number": invoice.number, "total": str(invoice.total_amount)}
            )
            return invoice
        
        invoice = await run_atomic(db, work)
        logger.info("Invoice created", extra={"invoice_id": invoice.id, "organization_id": ctx.organization_id})
        return invoice
    
    @staticmethod
    async def get_invoice(db: AsyncSession, ctx: TenantContext, invoice_id: int) -> Invoice:
        result = await db.execute(
            select(Invoice).where(Invoice.id == invoice_id, Invoice.organization_id == ctx.organization_id)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise ResourceNotFoundError("Invoice", invoice_id)
        return invoice
    
    @staticmethod
    async def list_invoices(
        db: AsyncSession,
        ctx: TenantContext,
        client_id: Optional[int] = None,
        overdue_on: Optional[date] = None
    ) -> List[Invoice]:
        query = select(Invoice).where(Invoice.organization_id == ctx.organization_id)
        if client_id is not None:
            query = query.where(Invoice.client_id == client_id)
        result = await db.execute(query.order_by(desc(Invoice.id)))
        invoices = list(result.scalars().all())
        if overdue_on is not None:
            invoices = [invoice for invoice in invoices if invoice.is_overdue(overdue_on)]
        return invoices
    
    @staticmethod
    async def create_parcel(db: AsyncSession, ctx: TenantContext, data: ParcelCreate) -> Parcel:
        require_cents(data.amount_due, "amount_due")
        
        async def work() -> Parcel:
            await BillingService.get_client(db, ctx, data.client_id)
            parcel = Parcel(
                organization_id=ctx.organization_id,
                client_id=data.client_id,
                reference_code=data.reference_code,
                description=data.description,
                weight_kg=data.weight_kg,
                amount_due=data.amount_due,
                currency=data.currency,
                payment_status=ParcelPaymentStatus.UNPAID,
                is_active=True
            )
            db.add(parcel)
            await db.flush()
            await log_event(db, ctx, AuditAction.PARCEL_CREATED, "parcel", parcel.id)
            return parcel
        
        return await run_atomic(db, work)
    
    @staticmethod
    async def get_parcel(db: AsyncSession, ctx: TenantContext, parcel_id: int) -> Parcel:
        result = await db.execute(
            select(Parcel).where(Parcel.id == parcel_id, Parcel.organization_id == ctx.organization_id)
        )
        parcel = result.scalar_one_or_none()
        if not parcel:
            raise ResourceNotFoundError("Parcel", parcel_id)
        return parcel
