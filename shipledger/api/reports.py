"""
Reports API

On-time delivery rate per month and revenue per customer.
"""
from dataclasses import asdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shipledger.exceptions import ConstraintViolation
from shipledger.models.base import get_db
from shipledger.services.report_service import ReportService
from shipledger.utils.helpers import parse_month

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/on-time")
async def get_on_time_rate(
    start: Optional[date] = Query(None, description="First planned arrival date included"),
    end: Optional[date] = Query(None, description="Last planned arrival date included"),
    month: Optional[str] = Query(None, description="Shortcut for a single month (YYYY-MM)"),
    db: Session = Depends(get_db)
):
    """
    On-time delivery percentage per month of planned arrival.

    A shipment is on time when it was delivered on or before the planned
    arrival date of its route.
    """
    if month:
        try:
            start = parse_month(month)
        except ValueError as e:
            raise ConstraintViolation("month", month, str(e))
        next_month = date(start.year + start.month // 12, start.month % 12 + 1, 1)
        end = date.fromordinal(next_month.toordinal() - 1)

    rows = ReportService(db).on_time_delivery_rate(start, end)
    return {
        "success": True,
        "data": {
            "months": [asdict(r) for r in rows],
            "count": len(rows),
        }
    }


@router.get("/revenue")
async def get_revenue_by_customer(
    status: Optional[List[str]] = Query(None, description="Invoice statuses counted (default PAID, PARTIAL)"),
    db: Session = Depends(get_db)
):
    rows = ReportService(db).revenue_by_customer(status)
    return {
        "success": True,
        "data": {
            "customers": [asdict(r) for r in rows],
            "count": len(rows),
        }
    }
