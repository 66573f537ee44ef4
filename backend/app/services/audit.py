"""
Audit logging service for ledger actions.

Audit rows are added to the caller's unit of work and committed (or
rolled back) together with the action they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog
from backend.app.core.tenancy import TenantContext


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"
    
    TRANSACTION_CREATED = "TRANSACTION_CREATED"
    TRANSACTION_DELETED = "TRANSACTION_DELETED"
    
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PAYMENT_DELETED = "PAYMENT_DELETED"
    
    CLIENT_CREATED = "CLIENT_CREATED"
    PARCEL_CREATED = "PARCEL_CREATED"
    
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_TRANSITIONED = "INVOICE_TRANSITIONED"
    INVOICE_SENT = "INVOICE_SENT"
    
    PENDING_CREATED = "PENDING_CREATED"
    PENDING_CONFIRMED = "PENDING_CONFIRMED"
    PENDING_CANCELLED = "PENDING_CANCELLED"


async def log_event(
    db: AsyncSession,
    ctx: TenantContext,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add a ledger event to the audit log.
    
    Args:
        db: Database session (flushed, not committed)
        ctx: Tenant context of the caller
        action: Action being performed (use AuditAction constants)
        entity_type: Kind of row acted upon
        entity_id: ID of the row acted upon
        metadata: Additional context as JSON
        
    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        organization_id=ctx.organization_id,
        actor_id=ctx.actor_id,
        actor_username=ctx.actor_username,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata
    )
    
    db.add(audit_log)
    await db.flush()
    
    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    ctx: TenantContext,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve the organization's audit trail with optional filtering.
    
    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).where(
        AuditLog.organization_id == ctx.organization_id
    ).order_by(desc(AuditLog.id))
    
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    
    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)
    
    if action:
        query = query.where(AuditLog.action == action)
    
    query = query.limit(limit)
    
    result = await db.execute(query)
    return list(result.scalars().all())
