"""
Movement Log Tests.

Validates the append-only chain, reversals and replay verification.
"""

from decimal import Decimal

import pytest
from sqlalchemy import update

from backend.app.core.exceptions import (
    InvalidTransitionError, LedgerValidationError, ResourceNotFoundError
)
from backend.app.db.unit_of_work import run_atomic
from backend.app.domain.ledger.movement_log import balance_after
from backend.app.models.ledger_enums import MovementDirection
from backend.app.models.movement import Movement
from backend.tests.factories import open_account


async def record(services, db, ctx, account_id, direction, amount, **kwargs):
    return await run_atomic(db, lambda: services.movements.record(
        db, ctx, account_id, direction, Decimal(amount), **kwargs
    ))


def test_balance_after_follows_direction():
    assert balance_after(MovementDirection.CREDIT, Decimal("10"), Decimal("5")) == Decimal("15")
    assert balance_after(MovementDirection.DEBIT, Decimal("10"), Decimal("5")) == Decimal("5")
    assert MovementDirection.CREDIT.opposite == MovementDirection.DEBIT


async def test_movements_chain_balances(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")

    first = await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "30")
    second = await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "12.50")

    assert first.balance_before == Decimal("100")
    assert first.balance_after == Decimal("70")
    assert second.balance_before == first.balance_after
    assert second.balance_after == Decimal("82.50")
    assert await services.accounts.get_balance(db_session, ctx, account.id) == Decimal("82.50")


async def test_non_positive_amount_rejected(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")

    with pytest.raises(LedgerValidationError):
        await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "0")
    with pytest.raises(LedgerValidationError):
        await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "-3")


async def test_sub_cent_amount_rejected(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")

    with pytest.raises(LedgerValidationError) as exc_info:
        await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "0.001")
    assert exc_info.value.details["field"] == "amount"

    await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "5")
    assert await services.accounts.get_balance(db_session, ctx, account.id) == Decimal("105")
    assert len(await services.movements.history(db_session, ctx, account.id)) == 2


async def test_reverse_writes_inverse_and_keeps_original(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")
    original = await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "40")

    reversal = await run_atomic(db_session, lambda: services.movements.reverse(db_session, ctx, original.id))

    assert reversal.direction == MovementDirection.CREDIT
    assert reversal.amount == Decimal("40")
    assert reversal.reversal_of_id == original.id
    assert reversal.balance_after == Decimal("100")

    kept = await services.movements.get(db_session, ctx, original.id)
    assert kept.direction == MovementDirection.DEBIT
    assert kept.amount == Decimal("40")


async def test_movement_reversed_at_most_once(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")
    original = await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "10")
    reversal = await run_atomic(db_session, lambda: services.movements.reverse(db_session, ctx, original.id))

    with pytest.raises(InvalidTransitionError):
        await run_atomic(db_session, lambda: services.movements.reverse(db_session, ctx, original.id))
    with pytest.raises(InvalidTransitionError):
        await run_atomic(db_session, lambda: services.movements.reverse(db_session, ctx, reversal.id))


async def test_reversal_allowed_on_inactive_account(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")
    original = await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "10")
    await services.account_admin.deactivate(db_session, ctx, account.id)

    with pytest.raises(ResourceNotFoundError):
        await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "1")

    reversal = await run_atomic(db_session, lambda: services.movements.reverse(db_session, ctx, original.id))
    assert reversal.balance_after == Decimal("100")


async def test_history_newest_first(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="5")
    await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "1")
    await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "2")

    history = await services.movements.history(db_session, ctx, account.id, limit=2)
    assert [m.amount for m in history] == [Decimal("2"), Decimal("1")]


async def test_replay_matches_stored_balance(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")
    await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "25")
    await record(services, db_session, ctx, account.id, MovementDirection.CREDIT, "7.25")

    report = await services.movements.verify(db_session, ctx, account.id)

    assert report.is_consistent
    assert report.movement_count == 3
    assert report.replayed_balance == Decimal("82.25")
    assert report.stored_balance == Decimal("82.25")


async def test_replay_reports_first_broken_movement(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")
    tampered = await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "25")
    await record(services, db_session, ctx, account.id, MovementDirection.DEBIT, "5")

    await db_session.execute(
        update(Movement).where(Movement.id == tampered.id).values(amount=Decimal("20"))
    )
    await db_session.commit()
    db_session.expire_all()

    report = await services.movements.verify(db_session, ctx, account.id)

    assert not report.is_consistent
    assert report.first_broken_movement_id == tampered.id
