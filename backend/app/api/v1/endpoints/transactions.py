"""
Transaction API Endpoints.

Recording, listing and deleting revenue, expense and transfer operations.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_services, get_tenant_context, LedgerServices
from backend.app.core.tenancy import TenantContext
from backend.app.schemas.transaction import TransactionCreate, TransactionResponse

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    data: TransactionCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a transaction.
    
    All of its movements are written or none are.
    """
    return await services.transactions.create(db, ctx, data)


@router.get("", response_model=List[TransactionResponse])
async def list_transactions(
    limit: int = Query(10, ge=1, le=200),
    include_deleted: bool = False,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    return await services.transactions.list_recent(db, ctx, limit=limit, include_deleted=include_deleted)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    return await services.transactions.get(db, ctx, transaction_id)


@router.delete("/{transaction_id}", response_model=TransactionResponse)
async def delete_transaction(
    transaction_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Reverse every movement of the transaction and flag it deleted."""
    return await services.transactions.delete(db, ctx, transaction_id)
