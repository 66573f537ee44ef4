"""
Payment Reconciliation Tests.

Validates account credits, outstanding recomputation, overpayment
handling and payment deletion.
"""

from datetime import date
from decimal import Decimal

import pytest

from backend.app.core.exceptions import InvalidTransitionError, LedgerValidationError, ResourceNotFoundError
from backend.app.domain.billing.payer_health import health_bucket, payer_health
from backend.app.domain.billing.payment_reconciliation import PaymentReconciliation
from backend.app.models.billing_enums import InvoiceStatus, ParcelPaymentStatus, PaymentTargetType
from backend.app.models.ledger_enums import Currency, MovementDirection, TransactionKind
from backend.app.schemas.billing import PaymentCreate
from backend.app.schemas.transaction import TransactionCreate
from backend.tests.factories import create_client, create_invoice, create_parcel, open_account


def invoice_payment(invoice, account, amount, client_id=None):
    return PaymentCreate(
        target_type=PaymentTargetType.INVOICE,
        target_id=invoice.id,
        client_id=client_id or invoice.client_id,
        amount_paid=Decimal(amount),
        account_id=account.id,
        payment_method="cash"
    )


async def test_cash_revenue_then_invoice_payment_scenario(db_session, services, ctx):
    cash = await open_account(services, db_session, ctx, "Cash", balance="100.00")

    await services.transactions.create(db_session, ctx, TransactionCreate(
        kind=TransactionKind.REVENUE, amount=Decimal("50.00"), currency=Currency.USD,
        motif="Vente comptoir", destination_account_id=cash.id
    ))
    assert await services.accounts.get_balance(db_session, ctx, cash.id) == Decimal("150.00")
    credit = (await services.movements.history(db_session, ctx, cash.id, limit=1))[0]
    assert credit.direction == MovementDirection.CREDIT
    assert credit.balance_before == Decimal("100.00")
    assert credit.balance_after == Decimal("150.00")

    payer = await create_client(db_session, ctx)
    invoice = await create_invoice(db_session, ctx, payer.id, total="30.00")
    await services.invoices.transition(db_session, ctx, invoice.id, InvoiceStatus.VALIDATED)

    result = await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "30.00"))

    assert await services.accounts.get_balance(db_session, ctx, cash.id) == Decimal("180.00")
    assert result.outstanding == Decimal("0.00")
    assert result.recommended_status == InvoiceStatus.PAID.value

    paid = await services.invoices.transition(db_session, ctx, invoice.id, InvoiceStatus.PAID)
    assert paid.status == InvoiceStatus.PAID


async def test_partial_payment_recommends_partially_paid(db_session, services, ctx):
    cash = await open_account(services, db_session, ctx, "Cash")
    payer = await create_client(db_session, ctx)
    invoice = await create_invoice(db_session, ctx, payer.id, total="200")
    await services.invoices.transition(db_session, ctx, invoice.id, InvoiceStatus.VALIDATED)

    result = await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "80"))

    assert result.total_paid == Decimal("80")
    assert result.outstanding == Decimal("120")
    assert result.recommended_status == InvoiceStatus.PARTIALLY_PAID.value
    assert not result.is_overpayment

    invoice = await services.invoices.get(db_session, ctx, invoice.id)
    assert invoice.status == InvoiceStatus.VALIDATED
    assert invoice.display_status == InvoiceStatus.PARTIALLY_PAID


async def test_overpayment_flagged_and_outstanding_clamped(db_session, services, ctx):
    cash = await open_account(services, db_session, ctx, "Cash")
    payer = await create_client(db_session, ctx)
    invoice = await create_invoice(db_session, ctx, payer.id, total="100")

    result = await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "120"))

    assert result.is_overpayment
    assert result.payment.is_overpayment
    assert result.outstanding == Decimal("0")
    assert result.raw_outstanding == Decimal("-20")


async def test_overpayment_beyond_margin_rejected(db_session, services, ctx):
    reconciliation = PaymentReconciliation(services.movements, overpayment_margin=Decimal("5"), clock=services.clock)
    cash = await open_account(services, db_session, ctx, "Cash")
    payer = await create_client(db_session, ctx)
    invoice = await create_invoice(db_session, ctx, payer.id, total="100")

    with pytest.raises(LedgerValidationError) as exc_info:
        await reconciliation.record_payment(db_session, ctx, invoice_payment(invoice, cash, "110"))
    assert exc_info.value.details["field"] == "amount_paid"
    assert await services.accounts.get_balance(db_session, ctx, cash.id) == Decimal("0")

    result = await reconciliation.record_payment(db_session, ctx, invoice_payment(invoice, cash, "104"))
    assert result.is_overpayment


async def test_payment_validation(db_session, services, ctx):
    cash = await open_account(services, db_session, ctx, "Cash")
    francs = await open_account(services, db_session, ctx, "Cash CDF", currency=Currency.CDF)
    payer = await create_client(db_session, ctx)
    stranger = await create_client(db_session, ctx, name="Autre Client")
    invoice = await create_invoice(db_session, ctx, payer.id, total="100")

    with pytest.raises(LedgerValidationError):
        await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "0"))
    with pytest.raises(LedgerValidationError) as exc_info:
        await services.payments.record_payment(
            db_session, ctx, invoice_payment(invoice, cash, "10", client_id=stranger.id)
        )
    assert exc_info.value.details["field"] == "client_id"
    with pytest.raises(LedgerValidationError) as exc_info:
        await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, francs, "10"))
    assert exc_info.value.details["field"] == "account_id"
    with pytest.raises(ResourceNotFoundError):
        await services.payments.record_payment(
            db_session, ctx, invoice_payment(invoice, cash, "10", client_id=999)
        )

    with pytest.raises(LedgerValidationError) as exc_info:
        await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "10.005"))
    assert exc_info.value.details["field"] == "amount_paid"

    await services.invoices.transition(db_session, ctx, invoice.id, InvoiceStatus.CANCELLED)
    with pytest.raises(LedgerValidationError):
        await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "10"))

    assert await services.accounts.get_balance(db_session, ctx, cash.id) == Decimal("0")


async def test_billing_amounts_finer_than_a_cent_rejected(db_session, ctx):
    payer = await create_client(db_session, ctx)

    with pytest.raises(LedgerValidationError) as exc_info:
        await create_invoice(db_session, ctx, payer.id, total="99.999")
    assert exc_info.value.details["field"] == "total_amount"
    with pytest.raises(LedgerValidationError) as exc_info:
        await create_parcel(db_session, ctx, payer.id, amount_due="80.001")
    assert exc_info.value.details["field"] == "amount_due"

    invoice = await create_invoice(db_session, ctx, payer.id, total="99.99")
    assert invoice.total_amount == Decimal("99.99")

async def test_delete_payment_reverses_credit(db_session, services, ctx):
    cash = await open_account(services, db_session, ctx, "Cash", balance="10")
    payer = await create_client(db_session, ctx)
    invoice = await create_invoice(db_session, ctx, payer.id, total="100")
    await services.invoices.transition(db_session, ctx, invoice.id, InvoiceStatus.VALIDATED)
    first = await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "60"))
    await services.payments.record_payment(db_session, ctx, invoice_payment(invoice, cash, "40"))

    result = await services.payments.delete_payment(db_session, ctx, first.payment.id)

    assert result.payment.is_deleted
    assert result.total_paid == Decimal("40")
    assert result.outstanding == Decimal("60")
    assert result.recommended_status == InvoiceStatus.PARTIALLY_PAID.value
    assert await services.accounts.get_balance(db_session, ctx, cash.id) == Decimal("50")
    assert (await services.movements.verify(db_session, ctx, cash.id)).is_consistent

    with pytest.raises(InvalidTransitionError):
        await services.payments.delete_payment(db_session, ctx, first.payment.id)


async def test_parcel_payment_status(db_session, services, ctx):
    cash = await open_account(services, db_session, ctx, "Cash")
    payer = await create_client(db_session, ctx)
    parcel = await create_parcel(db_session, ctx, payer.id, amount_due="80")

    def parcel_payment(amount):
        return PaymentCreate(
            target_type=PaymentTargetType.PARCEL, target_id=parcel.id, client_id=payer.id,
            amount_paid=Decimal(amount), account_id=cash.id
        )

    result = await services.payments.record_payment(db_session, ctx, parcel_payment("30"))
    assert result.recommended_status == ParcelPaymentStatus.PARTIAL.value
    assert result.payment.parcel_id == parcel.id

    result = await services.payments.record_payment(db_session, ctx, parcel_payment("50"))
    assert result.recommended_status == ParcelPaymentStatus.PAID.value
    assert result.outstanding == Decimal("0")


async def test_payer_health(db_session, services, ctx):
    payer = await create_client(db_session, ctx)
    await create_invoice(db_session, ctx, payer.id, number="INV-1", due_date=date(2026, 1, 10))
    await create_invoice(db_session, ctx, payer.id, number="INV-2", due_date=date(2026, 6, 1))
    await create_invoice(db_session, ctx, payer.id, number="INV-3", due_date=date(2026, 7, 1))
    await create_invoice(db_session, ctx, payer.id, number="INV-4", due_date=date(2026, 8, 1))

    health = await payer_health(db_session, ctx, payer.id, date(2026, 3, 2))

    assert health.total_invoices == 4
    assert health.overdue_invoices == 1
    assert health.overdue_ratio == 25
    assert health.health == "warning"
    assert health.total_outstanding == Decimal("800")


def test_health_bucket():
    assert health_bucket(0, 0) == "unknown"
    assert health_bucket(3, 0) == "good"
    assert health_bucket(4, 25) == "warning"
    assert health_bucket(2, 50) == "bad"
