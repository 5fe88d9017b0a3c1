"""
Billing Data Models

Invoices issued to customers, their line items and the payments received
against them. Line totals are derived, never stored.
"""
import enum
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Date, Numeric, ForeignKey, CheckConstraint, Enum
)
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from shipledger.models.base import Base


class InvoiceStatus(str, enum.Enum):
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    VOID = "VOID"


class PaymentMethod(str, enum.Enum):
    WIRE = "WIRE"
    ACH = "ACH"
    CARD = "CARD"
    CHECK = "CHECK"
    CASH = "CASH"


class Invoice(Base):
    """Invoice for one customer, optionally tied to a shipment"""
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_invoices_total_non_negative"),
        CheckConstraint("due_date >= issue_date", name="ck_invoices_due_after_issue"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_no = Column(String(32), unique=True, index=True, nullable=False)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=True, index=True)

    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    status = Column(
        Enum(InvoiceStatus, name="invoice_status", create_constraint=True),
        nullable=False,
        default=InvoiceStatus.OPEN,
        index=True,
    )

    customer = relationship("Customer", back_populates="invoices")
    shipment = relationship("Shipment")
    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.id",
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )

    @property
    def lines_total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def paid_total(self) -> Decimal:
        return sum((Decimal(p.paid_amount) for p in self.payments), Decimal("0"))

    @property
    def balance_due(self) -> Decimal:
        return Decimal(self.total_amount) - self.paid_total

    def derive_status(self) -> InvoiceStatus:
        """Status implied by the payments received so far. VOID is sticky."""
        if self.status == InvoiceStatus.VOID:
            return InvoiceStatus.VOID
        paid = self.paid_total
        if paid <= 0:
            return InvoiceStatus.OPEN
        if paid >= Decimal(self.total_amount):
            return InvoiceStatus.PAID
        return InvoiceStatus.PARTIAL

    def __repr__(self):
        return f"<Invoice {self.invoice_no} {self.total_amount} [{self.status}]>"


class InvoiceLine(Base):
    """Invoice line item; line_total is always quantity x unit_price"""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_invoice_lines_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(
        Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="lines")

    @hybrid_property
    def line_total(self):
        if self.quantity is None or self.unit_price is None:
            return None
        return Decimal(self.quantity) * Decimal(self.unit_price)

    @line_total.expression
    def line_total(cls):
        return cls.quantity * cls.unit_price

    def __repr__(self):
        return f"<InvoiceLine {self.description}: {self.quantity} x {self.unit_price}>"


class Payment(Base):
    """Payment received against an invoice"""
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("paid_amount > 0", name="ck_payments_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(
        Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    paid_amount = Column(Numeric(12, 2), nullable=False)
    paid_date = Column(Date, nullable=False)
    method = Column(
        Enum(PaymentMethod, name="payment_method", create_constraint=True),
        nullable=False,
    )
    reference = Column(String(64), nullable=True)

    invoice = relationship("Invoice", back_populates="payments")

    def __repr__(self):
        return f"<Payment {self.paid_amount} on {self.paid_date} ({self.method})>"
