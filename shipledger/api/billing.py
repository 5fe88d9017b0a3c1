"""
Billing API

Invoices, line items and payments. Invoice status is never posted
directly: it follows the payments, except for voiding.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel

from shipledger.models.base import get_db
from shipledger.models.billing import Invoice
from shipledger.services.billing_service import BillingService
from shipledger.services.ledger_service import LedgerService
from shipledger.utils.helpers import row_to_dict

router = APIRouter(prefix="/invoices", tags=["billing"])


class InvoiceLineCreate(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal


class InvoiceCreate(BaseModel):
    invoice_no: str
    customer_id: int
    issue_date: date
    due_date: date
    total_amount: Optional[Decimal] = None  # defaults to the sum of the lines
    shipment_id: Optional[int] = None
    currency: str = "USD"
    lines: List[InvoiceLineCreate] = []


class PaymentCreate(BaseModel):
    paid_amount: Decimal
    paid_date: date
    method: str = "WIRE"
    reference: Optional[str] = None


def _invoice_detail(service: BillingService, invoice: Invoice) -> dict:
    data = row_to_dict(invoice)
    data["summary"] = service.invoice_summary(invoice.id)
    data["lines"] = [row_to_dict(line, extra=("line_total",)) for line in invoice.lines]
    data["payments"] = [row_to_dict(p) for p in invoice.payments]
    return data


@router.post("", status_code=201)
async def create_invoice(invoice: InvoiceCreate, db: Session = Depends(get_db)):
    """Issue an OPEN invoice with its lines."""
    service = BillingService(db)
    created = service.create_invoice(
        invoice_no=invoice.invoice_no,
        customer_id=invoice.customer_id,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        total_amount=invoice.total_amount,
        shipment_id=invoice.shipment_id,
        currency=invoice.currency,
        lines=[line.model_dump() for line in invoice.lines],
    )
    return {"success": True, "data": _invoice_detail(service, created)}


@router.get("/overdue")
async def get_overdue(
    as_of: Optional[date] = Query(None, description="Reference date, defaults to today"),
    db: Session = Depends(get_db)
):
    invoices = BillingService(db).overdue_invoices(as_of or date.today())
    return {
        "success": True,
        "data": {
            "invoices": [row_to_dict(i, extra=("balance_due",)) for i in invoices],
            "count": len(invoices),
        }
    }


@router.get("/{invoice_id}")
async def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    service = BillingService(db)
    invoice = service.ledger.get(Invoice, invoice_id)
    return {"success": True, "data": _invoice_detail(service, invoice)}


@router.post("/{invoice_id}/lines", status_code=201)
async def add_line(invoice_id: int, line: InvoiceLineCreate, db: Session = Depends(get_db)):
    created = BillingService(db).add_line(invoice_id, line.description, line.quantity, line.unit_price)
    return {"success": True, "data": row_to_dict(created, extra=("line_total",))}


@router.post("/{invoice_id}/payments", status_code=201)
async def record_payment(invoice_id: int, payment: PaymentCreate, db: Session = Depends(get_db)):
    """Record a payment; the response carries the invoice status that resulted."""
    service = BillingService(db)
    created = service.record_payment(
        invoice_id=invoice_id,
        paid_amount=payment.paid_amount,
        paid_date=payment.paid_date,
        method=payment.method,
        reference=payment.reference,
    )
    return {
        "success": True,
        "data": {
            "payment": row_to_dict(created),
            "invoice_status": created.invoice.status.value,
        }
    }


@router.post("/{invoice_id}/void")
async def void_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = BillingService(db).void_invoice(invoice_id)
    return {"success": True, "data": row_to_dict(invoice)}


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    """Delete an invoice together with its lines and payments."""
    removed = LedgerService(db).delete(Invoice, invoice_id)
    return {"success": True, "data": {"removed": removed}}
