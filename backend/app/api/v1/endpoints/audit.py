"""
Audit Trail API Endpoints.

Read-only view of the organization's ledger actions.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_tenant_context
from backend.app.core.tenancy import TenantContext
from backend.app.schemas.audit import AuditLogResponse
from backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("", response_model=List[AuditLogResponse])
async def list_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db)
):
    """Most recent first."""
    return await get_audit_trail(db, ctx, entity_type=entity_type, entity_id=entity_id, action=action, limit=limit)
