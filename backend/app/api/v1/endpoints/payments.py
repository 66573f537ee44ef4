"""
Payment and Client API Endpoints.

Payments are reconciled against invoices or parcels; the response
carries the recommended invoice status without applying it.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_services, get_tenant_context, LedgerServices
from backend.app.core.tenancy import TenantContext
from backend.app.domain.billing.billing_service import BillingService
from backend.app.domain.billing.payer_health import payer_health
from backend.app.schemas.billing import (
    ClientCreate, ClientResponse, PayerHealthResponse, PaymentCreate, ReconciliationResponse
)

router = APIRouter(prefix="/payments", tags=["Payments"])
client_router = APIRouter(prefix="/clients", tags=["Clients"])


def _reconciliation_response(result) -> ReconciliationResponse:
    return ReconciliationResponse.model_validate(result, from_attributes=True)


@router.post("", response_model=ReconciliationResponse, status_code=201)
async def record_payment(
    data: PaymentCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    result = await services.payments.record_payment(db, ctx, data)
    return _reconciliation_response(result)


@router.delete("/{payment_id}", response_model=ReconciliationResponse)
async def delete_payment(
    payment_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Reverse the payment's credit and re-derive the target's totals."""
    result = await services.payments.delete_payment(db, ctx, payment_id)
    return _reconciliation_response(result)


@client_router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    data: ClientCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    return await BillingService.create_client(db, ctx, data)


@client_router.get("/{client_id}/payer-health", response_model=PayerHealthResponse)
async def get_payer_health(
    client_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Share of the client's invoices that are overdue today."""
    return await payer_health(db, ctx, client_id, services.clock.now().date())
