"""
Tests for BillingService: invoice issuing, payments driving the invoice
status, voiding and the invoice summary.
"""
from datetime import date
from decimal import Decimal

import pytest

from shipledger.exceptions import ConstraintViolation, ForeignKeyViolation, InvalidTransition
from shipledger.models import Invoice, InvoiceLine, InvoiceStatus, Payment
from shipledger.services.billing_service import BillingService


@pytest.fixture
def billing(db):
    return BillingService(db)


@pytest.fixture
def invoice(billing, customer):
    """300.00 invoice built from two lines."""
    return billing.create_invoice(
        invoice_no="inv-2024-001",
        customer_id=customer.id,
        issue_date=date(2024, 3, 1),
        due_date=date(2024, 3, 31),
        lines=[
            {"description": "Ocean freight 40'", "quantity": 1, "unit_price": "250.00"},
            {"description": "Documentation fee", "quantity": 2, "unit_price": "25.00"},
        ],
    )


# ────────────────────────────────────────────
# ISSUING
# ────────────────────────────────────────────


class TestIssuing:

    def test_total_defaults_to_sum_of_lines(self, invoice):
        assert invoice.invoice_no == "INV-2024-001"
        assert invoice.status == InvoiceStatus.OPEN
        assert Decimal(invoice.total_amount) == Decimal("300.00")
        assert [line.line_total for line in invoice.lines] == [Decimal("250.00"), Decimal("50.00")]

    def test_bad_line_rejects_whole_invoice(self, billing, db, customer):
        with pytest.raises(ConstraintViolation) as exc:
            billing.create_invoice(
                "INV-BAD", customer.id, date(2024, 3, 1), date(2024, 3, 31),
                lines=[{"description": "Freight", "quantity": 0, "unit_price": 10}],
            )
        assert exc.value.field_name == "quantity"
        assert db.query(Invoice).count() == 0
        assert db.query(InvoiceLine).count() == 0

    def test_unknown_customer(self, billing):
        with pytest.raises(ForeignKeyViolation):
            billing.create_invoice("INV-X", 404, date(2024, 3, 1), date(2024, 3, 31), total_amount=10)

    def test_negative_total_rejected(self, billing, customer):
        with pytest.raises(ConstraintViolation):
            billing.create_invoice("INV-NEG", customer.id, date(2024, 3, 1), date(2024, 3, 31), total_amount=-1)

    def test_add_line_to_existing_invoice(self, billing, invoice):
        line = billing.add_line(invoice.id, "Demurrage", quantity="1.5", unit_price="40.00")
        assert line.line_total == Decimal("60.00")

        summary = billing.invoice_summary(invoice.id)
        assert summary["lines_total"] == Decimal("360.00")
        assert summary["lines_reconciled"] is False


# ────────────────────────────────────────────
# PAYMENTS
# ────────────────────────────────────────────


class TestPayments:

    def test_partial_then_paid(self, billing, invoice):
        billing.record_payment(invoice.id, "100.00", date(2024, 3, 10))
        assert billing.ledger.get(Invoice, invoice.id).status == InvoiceStatus.PARTIAL

        billing.record_payment(invoice.id, "200.00", date(2024, 3, 20), method="ACH")
        assert billing.ledger.get(Invoice, invoice.id).status == InvoiceStatus.PAID

        summary = billing.invoice_summary(invoice.id)
        assert summary["paid_total"] == Decimal("300.00")
        assert summary["balance_due"] == Decimal("0.00")
        assert summary["lines_reconciled"] is True

    def test_overpayment_is_paid(self, billing, invoice):
        billing.record_payment(invoice.id, "350.00", date(2024, 3, 10))
        assert billing.invoice_summary(invoice.id)["balance_due"] == Decimal("-50.00")
        assert billing.ledger.get(Invoice, invoice.id).status == InvoiceStatus.PAID

    def test_negative_payment_rejected(self, billing, db, invoice):
        with pytest.raises(ConstraintViolation) as exc:
            billing.record_payment(invoice.id, Decimal("-5.00"), date(2024, 3, 10))
        assert exc.value.field_name == "paid_amount"
        assert db.query(Payment).count() == 0

    def test_payment_on_unknown_invoice(self, billing):
        with pytest.raises(ForeignKeyViolation):
            billing.record_payment(8080, "10.00", date(2024, 3, 10))

    def test_deleting_payment_reopens_invoice(self, billing, invoice):
        payment = billing.record_payment(invoice.id, "300.00", date(2024, 3, 10))
        assert billing.ledger.get(Invoice, invoice.id).status == InvoiceStatus.PAID

        billing.ledger.delete(Payment, payment.id)
        assert billing.ledger.get(Invoice, invoice.id).status == InvoiceStatus.OPEN

    def test_correcting_payment_amount_updates_status(self, billing, invoice):
        payment = billing.record_payment(invoice.id, "30.00", date(2024, 3, 10))
        billing.ledger.update(Payment, payment.id, paid_amount="300.00")
        assert billing.ledger.get(Invoice, invoice.id).status == InvoiceStatus.PAID

    def test_status_cannot_be_set_by_hand(self, billing, invoice):
        with pytest.raises(InvalidTransition):
            billing.ledger.update(Invoice, invoice.id, status="PAID")


# ────────────────────────────────────────────
# VOIDING & OVERDUE
# ────────────────────────────────────────────


class TestVoidAndOverdue:

    def test_void_invoice_rejects_payments_and_lines(self, billing, invoice):
        voided = billing.void_invoice(invoice.id)
        assert voided.status == InvoiceStatus.VOID

        with pytest.raises(InvalidTransition):
            billing.record_payment(invoice.id, "10.00", date(2024, 3, 10))
        with pytest.raises(InvalidTransition):
            billing.add_line(invoice.id, "Late fee", 1, 10)

    def test_paid_invoice_cannot_be_voided(self, billing, invoice):
        billing.record_payment(invoice.id, "50.00", date(2024, 3, 10))
        with pytest.raises(InvalidTransition):
            billing.void_invoice(invoice.id)

    def test_overdue_invoices(self, billing, invoice, make_invoice):
        paid = make_invoice(total_amount="20.00")
        billing.record_payment(paid.id, "20.00", date(2024, 3, 5))
        later = make_invoice(due_date=date(2024, 5, 31))

        overdue = billing.overdue_invoices(as_of=date(2024, 4, 15))
        assert [i.invoice_no for i in overdue] == ["INV-2024-001"]
        assert later.id not in {i.id for i in overdue}
