"""
Invoice and Parcel API Endpoints.

Document creation goes through the billing service; status changes go
through the invoice state machine.
"""

from datetime import date
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_services, get_tenant_context, LedgerServices
from backend.app.core.tenancy import TenantContext
from backend.app.domain.billing.billing_service import BillingService
from backend.app.schemas.billing import (
    BulkTransitionRequest, InvoiceCreate, InvoiceResponse, InvoiceTransitionRequest,
    ParcelCreate, ParcelResponse, TransitionResultResponse
)

router = APIRouter(prefix="/invoices", tags=["Invoices"])
parcel_router = APIRouter(prefix="/parcels", tags=["Parcels"])


@router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Create an invoice or quote in DRAFT."""
    return await BillingService.create_invoice(db, ctx, data)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    client_id: Optional[int] = None,
    overdue_on: Optional[date] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """List invoices, optionally only those overdue on a given day."""
    return await BillingService.list_invoices(db, ctx, client_id=client_id, overdue_on=overdue_on)


@router.post("/bulk-transition", response_model=List[TransitionResultResponse])
async def bulk_transition(
    data: BulkTransitionRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Apply one transition to many invoices; each one succeeds or fails on its own."""
    return await services.invoices.bulk_transition(db, ctx, data.invoice_ids, data.status)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await BillingService.get_invoice(db, ctx, invoice_id)


@router.post("/{invoice_id}/transition", response_model=InvoiceResponse)
async def transition_invoice(
    invoice_id: int,
    data: InvoiceTransitionRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    return await services.invoices.transition(db, ctx, invoice_id, data.status)


@router.post("/{invoice_id}/mark-sent", response_model=InvoiceResponse)
async def mark_invoice_sent(
    invoice_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    return await services.invoices.mark_sent(db, ctx, invoice_id)


@parcel_router.post("", response_model=ParcelResponse, status_code=201)
async def create_parcel(
    data: ParcelCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await BillingService.create_parcel(db, ctx, data)


@parcel_router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await BillingService.get_parcel(db, ctx, parcel_id)
