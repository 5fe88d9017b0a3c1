"""
Billing Service: invoices, line items and payments

Invoice status is derived from payments:
  nothing paid              -> OPEN
  0 < paid < total_amount   -> PARTIAL
  paid >= total_amount      -> PAID
VOID is set manually, only on an invoice without payments, and is final.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from shipledger.models.billing import Invoice, InvoiceLine, InvoiceStatus, Payment, PaymentMethod
from shipledger.services.ledger_service import LedgerService
from shipledger.services.transaction import atomic
from shipledger.utils.logger import audit


class BillingService:
    def __init__(self, db: Session, ledger: Optional[LedgerService] = None):
        self.db = db
        self.ledger = ledger or LedgerService(db)

    def create_invoice(
        self,
        invoice_no: str,
        customer_id: int,
        issue_date: date,
        due_date: date,
        total_amount: Optional[Decimal] = None,
        shipment_id: Optional[int] = None,
        currency: str = "USD",
        lines: Iterable[Dict] = (),
    ) -> Invoice:
        """
        Create an OPEN invoice, optionally with its lines, in one transaction.

        When ``total_amount`` is omitted it defaults to the sum of the lines.
        """
        validator = self.ledger.validator
        line_values = [
            validator.validate_create(InvoiceLine, dict(line), deferred=("invoice_id",))
            for line in lines
        ]
        if total_amount is None:
            total_amount = sum(
                (v["quantity"] * v["unit_price"] for v in line_values), Decimal("0")
            )

        values = validator.validate_create(
            Invoice,
            {
                "invoice_no": invoice_no,
                "customer_id": customer_id,
                "shipment_id": shipment_id,
                "issue_date": issue_date,
                "due_date": due_date,
                "total_amount": total_amount,
                "currency": currency,
            },
        )

        with atomic(self.db):
            self.ledger.check_unique(Invoice, values)
            self.ledger.check_references(Invoice, values)
            invoice = Invoice(**values)
            for v in line_values:
                invoice.lines.append(InvoiceLine(**v))
            self.db.add(invoice)
            self.db.flush()

        audit("Invoice", "create", f"{invoice.invoice_no} for {invoice.total_amount} ({len(line_values)} line(s))")
        return invoice

    def add_line(self, invoice_id: int, description: str, quantity, unit_price) -> InvoiceLine:
        return self.ledger.create(
            InvoiceLine,
            invoice_id=invoice_id,
            description=description,
            quantity=quantity,
            unit_price=unit_price,
        )

    def record_payment(
        self,
        invoice_id: int,
        paid_amount,
        paid_date: date,
        method: PaymentMethod = PaymentMethod.WIRE,
        reference: Optional[str] = None,
    ) -> Payment:
        """Record a payment; the invoice status follows in the same transaction."""
        return self.ledger.create(
            Payment,
            invoice_id=invoice_id,
            paid_amount=paid_amount,
            paid_date=paid_date,
            method=method,
            reference=reference,
        )

    def void_invoice(self, invoice_id: int) -> Invoice:
        return self.ledger.update(Invoice, invoice_id, status=InvoiceStatus.VOID)

    def invoice_summary(self, invoice_id: int) -> Dict:
        """Totals of an invoice and whether its lines reconcile with total_amount."""
        invoice = self.ledger.get(Invoice, invoice_id)
        lines_total = invoice.lines_total
        return {
            "invoice_no": invoice.invoice_no,
            "status": invoice.status.value,
            "total_amount": Decimal(invoice.total_amount),
            "lines_total": lines_total,
            "paid_total": invoice.paid_total,
            "balance_due": invoice.balance_due,
            "lines_reconciled": bool(invoice.lines) and lines_total == Decimal(invoice.total_amount),
        }

    def overdue_invoices(self, as_of: date) -> List[Invoice]:
        """OPEN or PARTIAL invoices whose due date has passed."""
        return (
            self.db.query(Invoice)
            .filter(
                Invoice.status.in_([InvoiceStatus.OPEN, InvoiceStatus.PARTIAL]),
                Invoice.due_date < as_of,
            )
            .order_by(Invoice.due_date, Invoice.id)
            .all()
        )
