"""
Conversational channel handler.

Routes one inbound message to the right ledger operation and returns a
structured reply. Order of evaluation:
1. Confirmation replies ("oui", "non", ...) act on the channel's pending entry
2. Commands ("/solde", "/aide", "/historique")
3. Free text is parsed; balance questions answer with balances
4. Low-confidence parses ask for clarification
5. Everything else becomes a new pending proposal
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import ExpiredError, ResourceNotFoundError
from backend.app.core.tenancy import TenantContext
from backend.app.domain.agent import message_parser
from backend.app.domain.agent.pending_queue import PendingTransactionQueue
from backend.app.models.agent_enums import ReplyKind
from backend.app.models.ledger_enums import Currency
from backend.app.schemas.account import AccountResponse
from backend.app.schemas.agent import PendingTransactionResponse
from backend.app.schemas.transaction import TransactionResponse

logger = logging.getLogger(__name__)

HELP_COMMANDS = {
    "/solde": "Show account balances",
    "/historique": "Show the latest transactions",
    "/aide": "Show this help",
}


@dataclass
class ChannelReply:
    kind: ReplyKind
    data: Dict[str, Any] = field(default_factory=dict)


def _dump(schema, obj) -> Dict[str, Any]:
    return schema.model_validate(obj).model_dump(mode="json")


class ChannelHandler:
    
    def __init__(self, queue: PendingTransactionQueue, history_limit: int = 5):
        self.queue = queue
        self.engine = queue.engine
        self.accounts = queue.accounts
        self.history_limit = history_limit
    
    async def handle_message(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        channel_id: str,
        text: str
    ) -> ChannelReply:
        is_affirmative, is_negative = message_parser.classify_reply(text)
        if is_affirmative:
            return await self.confirm(db, ctx, channel_id)
        if is_negative:
            return await self.cancel(db, ctx, channel_id)
        
        command = message_parser.detect_command(text)
        if command is not None:
            return await self.run_command(db, ctx, command)
        
        intent = message_parser.parse(
            text,
            default_account=settings.default_agent_account,
            default_currency=Currency(settings.default_currency)
        )
        if intent.is_question:
            return await self.balances(db, ctx)
        
        if intent.amount is None:
            return ChannelReply(ReplyKind.CLARIFICATION, {"reason": "missing_amount", "text": text})
        if intent.kind is None or intent.confidence < settings.parser_min_confidence:
            return ChannelReply(
                ReplyKind.CLARIFICATION,
                {"reason": "low_confidence", "confidence": intent.confidence, "text": text}
            )
        
        entry = await self.queue.create(db, ctx, channel_id, intent)
        return ChannelReply(ReplyKind.PROPOSAL, {"pending": _dump(PendingTransactionResponse, entry)})
    
    async def confirm(self, db: AsyncSession, ctx: TenantContext, channel_id: str) -> ChannelReply:
        try:
            transaction = await self.queue.confirm(db, ctx, channel_id)
        except ExpiredError as exc:
            return ChannelReply(ReplyKind.EXPIRED, {"pending_id": exc.details.get("id")})
        except ResourceNotFoundError as exc:
            if exc.details.get("resource") != "PendingTransaction":
                raise
            return ChannelReply(ReplyKind.NOTHING_PENDING)
        return ChannelReply(ReplyKind.CONFIRMED, {"transaction": _dump(TransactionResponse, transaction)})
    
    async def cancel(self, db: AsyncSession, ctx: TenantContext, channel_id: str) -> ChannelReply:
        entry = await self.queue.cancel(db, ctx, channel_id)
        if entry is None:
            return ChannelReply(ReplyKind.NOTHING_PENDING)
        return ChannelReply(ReplyKind.CANCELLED, {"pending_id": entry.id})
    
    async def run_command(self, db: AsyncSession, ctx: TenantContext, command: message_parser.Command) -> ChannelReply:
        if command.name == "/solde":
            return await self.balances(db, ctx)
        if command.name == "/historique":
            return await self.history(db, ctx)
        if command.name == "/aide":
            return ChannelReply(ReplyKind.HELP, {"commands": HELP_COMMANDS})
        logger.info("Unknown channel command", extra={"command": command.name})
        return ChannelReply(ReplyKind.UNKNOWN_COMMAND, {"command": command.name})
    
    async def balances(self, db: AsyncSession, ctx: TenantContext) -> ChannelReply:
        accounts = await self.accounts.list_accounts(db, ctx)
        totals: Dict[str, Decimal] = {}
        for account in accounts:
            key = account.currency.value
            totals[key] = totals.get(key, Decimal("0")) + account.current_balance
        return ChannelReply(
            ReplyKind.BALANCES,
            {
                "accounts": [_dump(AccountResponse, a) for a in accounts],
                "totals": {key: str(value) for key, value in totals.items()}
            }
        )
    
    async def history(self, db: AsyncSession, ctx: TenantContext) -> ChannelReply:
        transactions = await self.engine.list_recent(db, ctx, limit=self.history_limit)
        items: List[Dict[str, Any]] = [_dump(TransactionResponse, t) for t in transactions]
        return ChannelReply(ReplyKind.HISTORY, {"transactions": items})
