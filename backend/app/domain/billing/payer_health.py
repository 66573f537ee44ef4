"""
Payer health (read-only).

Scores a client by the share of their invoices that are overdue.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.tenancy import TenantContext
from backend.app.models.billing_enums import DocumentType, InvoiceStatus
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice


@dataclass
class PayerHealth:
    client_id: int
    health: str
    total_invoices: int
    overdue_invoices: int
    overdue_ratio: int  # 0-100
    total_outstanding: Decimal


def health_bucket(total: int, ratio: int) -> str:
    if total == 0:
        return "unknown"
    if ratio == 0:
        return "good"
    if ratio <= 25:
        return "warning"
    return "bad"


async def payer_health(db: AsyncSession, ctx: TenantContext, client_id: int, today: date) -> PayerHealth:
    client = await db.execute(
        select(Client.id).where(Client.id == client_id, Client.organization_id == ctx.organization_id)
    )
    if client.scalar_one_or_none() is None:
        raise ResourceNotFoundError("Client", client_id)
    
    result = await db.execute(
        select(Invoice).where(
            Invoice.client_id == client_id,
            Invoice.organization_id == ctx.organization_id,
            Invoice.document_type == DocumentType.INVOICE,
            Invoice.status != InvoiceStatus.CANCELLED
        )
    )
    invoices = result.scalars().all()
    
    total = len(invoices)
    overdue = sum(1 for invoice in invoices if invoice.is_overdue(today))
    ratio = round(overdue * 100 / total) if total else 0
    
    return PayerHealth(
        client_id=client_id,
        health=health_bucket(total, ratio),
        total_invoices=total,
        overdue_invoices=overdue,
        overdue_ratio=ratio,
        total_outstanding=sum((invoice.outstanding for invoice in invoices), Decimal("0"))
    )
