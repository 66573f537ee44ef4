"""
Account API Endpoints.

Opening, listing and deactivating accounts; movement history and
replay verification.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_services, get_tenant_context, LedgerServices
from backend.app.core.tenancy import TenantContext
from backend.app.schemas.account import AccountCreate, AccountResponse, MovementResponse, ReplayReportResponse

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=AccountResponse, status_code=201)
async def open_account(
    data: AccountCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Open an account; a non-zero opening balance is recorded as a movement."""
    return await services.account_admin.open_account(db, ctx, data)


@router.get("", response_model=List[AccountResponse])
async def list_accounts(
    include_inactive: bool = False,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    return await services.accounts.list_accounts(db, ctx, active_only=not include_inactive)


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    return await services.accounts.get(db, ctx, account_id)


@router.post("/{account_id}/deactivate", response_model=AccountResponse)
async def deactivate_account(
    account_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    return await services.account_admin.deactivate(db, ctx, account_id)


@router.get("/{account_id}/movements", response_model=List[MovementResponse])
async def account_history(
    account_id: int,
    limit: int = Query(50, ge=1, le=500),
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Movements of the account, newest first."""
    return await services.movements.history(db, ctx, account_id, limit=limit)


@router.get("/{account_id}/verify", response_model=ReplayReportResponse)
async def verify_account(
    account_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Replay the account's movements from zero and compare with its stored balance."""
    report = await services.movements.verify(db, ctx, account_id)
    return ReplayReportResponse.model_validate(report)
