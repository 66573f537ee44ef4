"""
Conversational Channel API Endpoints.

Inbound messages from a messaging transport. Replies are structured;
rendering them is the transport's job.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_services, get_tenant_context, LedgerServices
from backend.app.core.tenancy import TenantContext
from backend.app.schemas.agent import ChannelMessage, ChannelReplyResponse, PendingTransactionResponse
from backend.app.schemas.transaction import TransactionResponse

router = APIRouter(prefix="/channels", tags=["Channels"])


@router.post("/{channel_id}/messages", response_model=ChannelReplyResponse)
async def post_message(
    channel_id: str,
    message: ChannelMessage,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    reply = await services.channels.handle_message(db, ctx, channel_id, message.text)
    return ChannelReplyResponse(kind=reply.kind, data=reply.data)


@router.get("/{channel_id}/pending", response_model=Optional[PendingTransactionResponse])
async def get_pending(
    channel_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """The channel's live proposal, or null."""
    return await services.pending.current(db, ctx, channel_id)


@router.post("/{channel_id}/confirm", response_model=TransactionResponse)
async def confirm_pending(
    channel_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """
    Promote the live proposal into a transaction.
    
    404 when nothing is pending, 410 when the proposal expired.
    """
    return await services.pending.confirm(db, ctx, channel_id)


@router.post("/{channel_id}/cancel", response_model=Optional[PendingTransactionResponse])
async def cancel_pending(
    channel_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    services: LedgerServices = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """Cancel the live proposal. Idempotent; returns null when nothing was live."""
    return await services.pending.cancel(db, ctx, channel_id)
