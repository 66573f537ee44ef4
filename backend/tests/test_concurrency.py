"""
Concurrency Tests.

Validates that lost races on balances and on the live-pending index
surface as conflicts, and that the unit of work retries them once.
"""

from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from backend.app.core.exceptions import ConflictError, LedgerValidationError
from backend.app.db.unit_of_work import is_unique_violation, run_atomic
from backend.app.models.account import Account
from backend.app.models.agent_enums import PendingStatus
from backend.app.models.ledger_enums import Currency, MovementDirection, TransactionKind
from backend.app.models.movement import Movement
from backend.app.models.pending_transaction import PendingTransaction
from backend.tests.factories import open_account


async def test_stale_expected_balance_conflicts(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")

    with pytest.raises(ConflictError) as exc_info:
        await run_atomic(db_session, lambda: services.accounts.apply_delta(
            db_session, ctx, account.id, Decimal("-10"), expected_balance=Decimal("90")
        ), retries=0)
    assert exc_info.value.details["account_id"] == account.id

    assert await services.accounts.get_balance(db_session, ctx, account.id) == Decimal("100")


async def test_concurrent_balance_change_is_retried_once(db_session, services, ctx, mocker):
    account = await open_account(services, db_session, ctx, "Cash", balance="100")

    original_lock = services.accounts.lock
    interfered = []

    async def lock_then_interfere(db, tenant, account_id, require_active=True):
        locked = await original_lock(db, tenant, account_id, require_active=require_active)
        if not interfered:
            interfered.append(account_id)
            # Another writer lands between our read and our write
            await db.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(current_balance=Account.current_balance + 5)
                .execution_options(synchronize_session=False)
            )
        return locked

    mocker.patch.object(services.accounts, "lock", side_effect=lock_then_interfere)

    movement = await run_atomic(db_session, lambda: services.movements.record(
        db_session, ctx, account.id, MovementDirection.DEBIT, Decimal("10")
    ))

    assert interfered == [account.id]
    assert movement.balance_before == Decimal("100")
    assert movement.balance_after == Decimal("90")
    assert (await services.movements.verify(db_session, ctx, account.id)).is_consistent


async def test_run_atomic_retries_conflict_once():
    calls = []

    async def work():
        calls.append(1)
        if len(calls) == 1:
            raise ConflictError()
        return "done"

    class FakeSession:
        rollbacks = 0
        commits = 0

        async def rollback(self):
            self.rollbacks += 1

        async def commit(self):
            self.commits += 1

    session = FakeSession()
    assert await run_atomic(session, work, retries=1) == "done"
    assert len(calls) == 2
    assert session.rollbacks == 1
    assert session.commits == 1


async def test_run_atomic_surfaces_conflict_after_retries(mocker):
    session = mocker.AsyncMock()
    work = mocker.AsyncMock(side_effect=ConflictError())

    with pytest.raises(ConflictError):
        await run_atomic(session, work, retries=1)
    assert work.await_count == 2
    assert session.rollback.await_count == 2
    session.commit.assert_not_awaited()


async def test_run_atomic_never_retries_other_errors(mocker):
    session = mocker.AsyncMock()
    work = mocker.AsyncMock(side_effect=LedgerValidationError("bad", field="amount"))

    with pytest.raises(LedgerValidationError):
        await run_atomic(session, work, retries=3)
    assert work.await_count == 1
    session.rollback.assert_awaited_once()


class DriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def integrity_error(message, sqlstate=None):
    return IntegrityError("INSERT ...", {}, DriverError(message, sqlstate))


def test_only_unique_violations_count_as_conflicts():
    assert is_unique_violation(integrity_error("UNIQUE constraint failed: accounts.name"))
    assert is_unique_violation(integrity_error("duplicate key value", sqlstate="23505"))
    assert not is_unique_violation(integrity_error("CHECK constraint failed: ck_payments_amount_positive"))
    assert not is_unique_violation(integrity_error("violates check constraint", sqlstate="23514"))
    assert not is_unique_violation(integrity_error("violates foreign key constraint", sqlstate="23503"))


async def test_run_atomic_propagates_non_unique_integrity_errors(mocker):
    session = mocker.AsyncMock()
    work = mocker.AsyncMock(side_effect=integrity_error("NOT NULL constraint failed: payments.account_id"))

    with pytest.raises(IntegrityError):
        await run_atomic(session, work, retries=3)
    assert work.await_count == 1
    session.rollback.assert_awaited_once()


async def test_check_violation_is_not_retried_as_conflict(db_session, services, ctx):
    account = await open_account(services, db_session, ctx, "Cash", balance="10")
    attempts = []

    async def insert_zero_movement():
        attempts.append(1)
        db_session.add(Movement(
            organization_id=ctx.organization_id,
            account_id=account.id,
            direction=MovementDirection.CREDIT,
            amount=Decimal("0"),
            balance_before=Decimal("10"),
            balance_after=Decimal("10")
        ))
        await db_session.flush()

    with pytest.raises(IntegrityError):
        await run_atomic(db_session, insert_zero_movement, retries=1)
    assert len(attempts) == 1
    assert await services.accounts.get_balance(db_session, ctx, account.id) == Decimal("10")


async def test_live_pending_index_rejects_second_row(db_session, ctx, clock):
    def pending_row():
        return PendingTransaction(
            organization_id=ctx.organization_id,
            channel_id="whatsapp:+243990000002",
            kind=TransactionKind.EXPENSE,
            amount=Decimal("1000"),
            currency=Currency.CDF,
            motif="taxi",
            account_name="Cash Bureau",
            confidence=0.8,
            status=PendingStatus.PENDING,
            created_at=clock.now(),
            expires_at=clock.now()
        )

    async def insert_two():
        db_session.add(pending_row())
        await db_session.flush()
        db_session.add(pending_row())
        await db_session.flush()

    with pytest.raises(ConflictError):
        await run_atomic(db_session, insert_two, retries=0)
