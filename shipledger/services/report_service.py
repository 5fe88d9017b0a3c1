"""
Report Service: read-only analytics over the ledger

  * on-time delivery rate per month (by the route's planned arrival month)
  * revenue per customer over invoices in a set of statuses
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from shipledger.config import get_settings
from shipledger.exceptions import ConstraintViolation
from shipledger.models.billing import Invoice, InvoiceStatus
from shipledger.models.customer import Customer
from shipledger.models.network import Route
from shipledger.models.shipment import Shipment, ShipmentStatus
from shipledger.utils.helpers import month_start, percentage, quantize_money
from shipledger.utils.logger import log


@dataclass(frozen=True)
class OnTimeRate:
    """One month of the on-time delivery report"""
    month: date  # first day of month
    on_time_pct: Decimal
    delivered: int
    on_time: int


@dataclass(frozen=True)
class CustomerRevenue:
    """Revenue attributed to one customer"""
    customer_name: str
    total_revenue: Decimal
    customer_id: int


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def on_time_delivery_rate(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[OnTimeRate]:
        """
        On-time delivery percentage per month.

        Considers DELIVERED shipments whose route's planned_arrival_date is
        within [start, end] (either bound may be open). A shipment is on time
        when the date of delivered_at is on or before planned_arrival_date.
        Months without delivered shipments produce no row.
        """
        if start and end and end < start:
            raise ConstraintViolation("end", end, "before start")

        query = (
            self.db.query(Route.planned_arrival_date, Shipment.delivered_at)
            .join(Route, Shipment.route_id == Route.id)
            .filter(
                Shipment.status == ShipmentStatus.DELIVERED,
                Shipment.delivered_at.isnot(None),
            )
        )
        if start:
            query = query.filter(Route.planned_arrival_date >= start)
        if end:
            query = query.filter(Route.planned_arrival_date <= end)

        totals = defaultdict(int)
        on_time = defaultdict(int)
        for planned_arrival, delivered_at in query.all():
            month = month_start(planned_arrival)
            totals[month] += 1
            if delivered_at.date() <= planned_arrival:
                on_time[month] += 1

        rows = [
            OnTimeRate(
                month=month,
                on_time_pct=percentage(on_time[month], totals[month]),
                delivered=totals[month],
                on_time=on_time[month],
            )
            for month in sorted(totals)
        ]
        log.info(f"On-time report {start} .. {end}: {len(rows)} month(s)")
        return rows

    def revenue_by_customer(
        self,
        statuses: Optional[Iterable[Union[InvoiceStatus, str]]] = None,
    ) -> List[CustomerRevenue]:
        """
        Sum of Invoice.total_amount per customer, highest first.

        ``statuses`` defaults to the configured revenue statuses (PAID, PARTIAL).
        """
        status_filter = self._parse_statuses(
            statuses if statuses is not None else get_settings().revenue_status_list
        )
        if not status_filter:
            return []

        total = func.sum(Invoice.total_amount).label("total_revenue")
        rows = (
            self.db.query(Customer.id, Customer.name, total)
            .join(Invoice, Invoice.customer_id == Customer.id)
            .filter(Invoice.status.in_(status_filter))
            .group_by(Customer.id, Customer.name)
            .order_by(total.desc(), Customer.name)
            .all()
        )
        return [
            CustomerRevenue(customer_name=name, total_revenue=quantize_money(revenue), customer_id=customer_id)
            for customer_id, name, revenue in rows
        ]

    @staticmethod
    def _parse_statuses(statuses) -> List[InvoiceStatus]:
        parsed = []
        for status in statuses:
            if isinstance(status, InvoiceStatus):
                parsed.append(status)
                continue
            name = str(status).strip().upper()
            if name not in InvoiceStatus.__members__:
                raise ConstraintViolation("statuses", status, "unknown invoice status")
            parsed.append(InvoiceStatus[name])
        return parsed
