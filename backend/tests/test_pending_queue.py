"""
Pending-Transaction Queue Tests.

Validates the one-live-entry-per-channel rule, lazy expiry and
promotion of confirmed proposals into transactions.
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from backend.app.core.exceptions import ExpiredError, LedgerValidationError, ResourceNotFoundError
from backend.app.domain.agent.message_parser import parse
from backend.app.models.agent_enums import PendingStatus
from backend.app.models.ledger_enums import Currency, MovementDirection, TransactionKind, TransactionOrigin
from backend.app.models.movement import Movement
from backend.app.models.pending_transaction import PendingTransaction
from backend.app.models.transaction import Transaction
from backend.tests.factories import open_account

CHANNEL = "whatsapp:+243990000001"


async def count(db, model, *criteria):
    query = select(func.count()).select_from(model)
    if criteria:
        query = query.where(*criteria)
    result = await db.execute(query)
    return result.scalar_one()


@pytest.fixture
async def cash_bureau(db_session, services, ctx):
    return await open_account(services, db_session, ctx, "Cash Bureau", currency=Currency.CDF, balance="100000")


async def test_no_double_pending(db_session, services, ctx):
    first = await services.pending.create(db_session, ctx, CHANNEL, parse("25k essence"))
    second = await services.pending.create(db_session, ctx, CHANNEL, parse("10k taxi"))

    rows = (await db_session.execute(
        select(PendingTransaction)
        .where(PendingTransaction.channel_id == CHANNEL)
        .order_by(PendingTransaction.id)
        .execution_options(populate_existing=True)
    )).scalars().all()

    assert [r.id for r in rows] == [first.id, second.id]
    assert rows[0].status == PendingStatus.EXPIRED
    assert rows[1].status == PendingStatus.PENDING
    assert (await services.pending.current(db_session, ctx, CHANNEL)).id == second.id


async def test_channels_are_independent(db_session, services, ctx, other_ctx):
    await services.pending.create(db_session, ctx, CHANNEL, parse("25k essence"))
    await services.pending.create(db_session, ctx, "telegram:42", parse("5k taxi"))
    await services.pending.create(db_session, other_ctx, CHANNEL, parse("1k pain"))

    assert await count(db_session, PendingTransaction, PendingTransaction.status == PendingStatus.PENDING) == 3


async def test_create_rejects_intent_without_amount(db_session, services, ctx):
    with pytest.raises(LedgerValidationError):
        await services.pending.create(db_session, ctx, CHANNEL, parse("acheté du papier"))


async def test_create_rejects_sub_cent_amount(db_session, services, ctx):
    intent = replace(parse("25k essence"), amount=Decimal("25.005"))

    with pytest.raises(LedgerValidationError) as exc_info:
        await services.pending.create(db_session, ctx, CHANNEL, intent)
    assert exc_info.value.details["field"] == "amount"
    assert await count(db_session, PendingTransaction) == 0


async def test_confirm_creates_one_expense_and_one_debit(db_session, services, ctx, cash_bureau):
    entry = await services.pending.create(db_session, ctx, CHANNEL, parse("25k essence"))
    assert entry.kind == TransactionKind.EXPENSE
    assert entry.amount == Decimal("25000")
    assert "essence" in entry.motif

    tx = await services.pending.confirm(db_session, ctx, CHANNEL)

    assert tx.kind == TransactionKind.EXPENSE
    assert tx.origin == TransactionOrigin.AGENT
    assert tx.source_account_id == cash_bureau.id
    assert tx.notes == "Agent - 62 - Transport"
    assert await count(db_session, Transaction) == 1
    assert await count(db_session, Movement, Movement.transaction_id == tx.id) == 1
    debit = (await services.movements.history(db_session, ctx, cash_bureau.id, limit=1))[0]
    assert debit.direction == MovementDirection.DEBIT
    assert await services.accounts.get_balance(db_session, ctx, cash_bureau.id) == Decimal("75000")

    resolved = await db_session.get(PendingTransaction, entry.id, populate_existing=True)
    assert resolved.status == PendingStatus.CONFIRMED
    assert resolved.transaction_id == tx.id

    with pytest.raises(ResourceNotFoundError):
        await services.pending.confirm(db_session, ctx, CHANNEL)


async def test_cancel_creates_nothing(db_session, services, ctx, cash_bureau):
    entry = await services.pending.create(db_session, ctx, CHANNEL, parse("25k essence"))

    cancelled = await services.pending.cancel(db_session, ctx, CHANNEL)

    assert cancelled.id == entry.id
    assert cancelled.status == PendingStatus.CANCELLED
    assert await count(db_session, Transaction) == 0
    assert await services.accounts.get_balance(db_session, ctx, cash_bureau.id) == Decimal("100000")
    assert await services.pending.cancel(db_session, ctx, CHANNEL) is None


async def test_confirm_after_expiry_fails(db_session, services, ctx, clock, cash_bureau):
    entry = await services.pending.create(db_session, ctx, CHANNEL, parse("25k essence"))
    clock.advance(minutes=5, seconds=1)

    assert await services.pending.current(db_session, ctx, CHANNEL) is None
    with pytest.raises(ExpiredError) as exc_info:
        await services.pending.confirm(db_session, ctx, CHANNEL)
    assert exc_info.value.details["id"] == entry.id

    assert await count(db_session, Transaction) == 0
    expired = await db_session.get(PendingTransaction, entry.id, populate_existing=True)
    assert expired.status == PendingStatus.EXPIRED


async def test_confirm_within_ttl_succeeds(db_session, services, ctx, clock, cash_bureau):
    await services.pending.create(db_session, ctx, CHANNEL, parse("25k essence"))
    clock.advance(minutes=4, seconds=59)

    tx = await services.pending.confirm(db_session, ctx, CHANNEL)
    assert tx.amount == Decimal("25000")


async def test_confirm_with_unknown_account_keeps_entry(db_session, services, ctx):
    await services.pending.create(db_session, ctx, CHANNEL, parse("25k essence"))

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await services.pending.confirm(db_session, ctx, CHANNEL)
    assert exc_info.value.details["resource"] == "Account"

    assert (await services.pending.current(db_session, ctx, CHANNEL)) is not None


async def test_revenue_confirmation_credits_named_account(db_session, services, ctx):
    mpesa = await open_account(services, db_session, ctx, "M-Pesa", currency=Currency.USD)
    await services.pending.create(db_session, ctx, CHANNEL, parse("500$ vente mpesa"))

    tx = await services.pending.confirm(db_session, ctx, CHANNEL)

    assert tx.destination_account_id == mpesa.id
    assert await services.accounts.get_balance(db_session, ctx, mpesa.id) == Decimal("500")
