"""
Schema-level tests: the constraints declared on the models are enforced
by the database itself, even when the service layer is bypassed.

  - CHECK constraints (container size, distinct route ports, amounts)
  - UNIQUE natural keys
  - FOREIGN KEY enforcement and ON DELETE CASCADE under SQLite
  - line_total as a derived, read-only attribute
"""
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from shipledger.models import (
    Container,
    ContainerSize,
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    Port,
    Route,
    Shipment,
    ShipmentContainer,
    ShipmentStatus,
    TrackingEvent,
    TrackingEventType,
)


# ────────────────────────────────────────────
# CHECK CONSTRAINTS
# ────────────────────────────────────────────


class TestCheckConstraints:
    """Raw ORM inserts that break a rule are rejected by the store."""

    def test_container_size_30_rejected(self, db):
        db.add(Container(container_no="TGHU0000001", size=30, type_code="DRY"))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()
        assert db.query(Container).count() == 0

    def test_route_with_same_origin_and_destination_rejected(self, db, ports):
        port = ports["CNSHA"]
        db.add(Route(
            origin_port_id=port.id,
            dest_port_id=port.id,
            planned_departure_date=date(2024, 1, 1),
            planned_arrival_date=date(2024, 1, 20),
        ))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()

    def test_route_arriving_before_departure_rejected(self, db, ports):
        db.add(Route(
            origin_port_id=ports["CNSHA"].id,
            dest_port_id=ports["USLAX"].id,
            planned_departure_date=date(2024, 2, 1),
            planned_arrival_date=date(2024, 1, 20),
        ))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()

    def test_negative_payment_rejected(self, db, make_invoice):
        invoice = make_invoice()
        db.add(Payment(
            invoice_id=invoice.id,
            paid_amount=Decimal("-5.00"),
            paid_date=date(2024, 3, 5),
            method=PaymentMethod.WIRE,
        ))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()

    def test_zero_quantity_line_rejected(self, db, make_invoice):
        invoice = make_invoice()
        db.add(InvoiceLine(invoice_id=invoice.id, description="Freight", quantity=0, unit_price=10))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()

    def test_duplicate_port_code_rejected(self, db, ports):
        db.add(Port(code="CNSHA", name="Shanghai again", country="CN", timezone="Asia/Shanghai"))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()


# ────────────────────────────────────────────
# FOREIGN KEYS & CASCADES
# ────────────────────────────────────────────


class TestReferentialIntegrity:
    """SQLite runs with PRAGMA foreign_keys=ON."""

    def test_shipment_with_missing_customer_rejected(self, db, route):
        db.add(Shipment(booking_no="BK-X", customer_id=999, route_id=route.id))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()

    def test_orm_delete_of_shipment_cascades(self, db, customer, route, containers):
        shipment = Shipment(booking_no="BK-ORM", customer_id=customer.id, route_id=route.id)
        for c in containers:
            shipment.container_links.append(ShipmentContainer(container=c))
        shipment.events.append(TrackingEvent(event_type=TrackingEventType.LOADED, event_time=datetime(2024, 2, 19)))
        db.add(shipment)
        db.commit()

        db.delete(shipment)
        db.commit()

        assert db.query(ShipmentContainer).count() == 0
        assert db.query(TrackingEvent).count() == 0
        # containers themselves are master data and survive
        assert db.query(Container).count() == 3

    def test_store_level_cascade_on_invoice(self, db, make_invoice):
        invoice = make_invoice()
        db.add(InvoiceLine(invoice_id=invoice.id, description="Freight", quantity=1, unit_price=100))
        db.commit()

        # bypass the ORM cascade entirely
        db.execute(Invoice.__table__.delete().where(Invoice.id == invoice.id))
        db.commit()

        assert db.query(InvoiceLine).count() == 0


# ────────────────────────────────────────────
# DERIVED VALUES & DEFAULTS
# ────────────────────────────────────────────


class TestDerivedValues:

    def test_line_total_is_quantity_times_price(self, db, make_invoice):
        invoice = make_invoice()
        line = InvoiceLine(invoice_id=invoice.id, description="THC", quantity=Decimal("3"), unit_price=Decimal("12.50"))
        db.add(line)
        db.commit()
        db.expire_all()

        assert line.line_total == Decimal("37.50")

    def test_line_total_has_no_setter(self):
        line = InvoiceLine(description="THC", quantity=1, unit_price=1)
        with pytest.raises(AttributeError):
            line.line_total = Decimal("99")

    def test_line_total_usable_in_queries(self, db, make_invoice):
        invoice = make_invoice()
        db.add_all([
            InvoiceLine(invoice_id=invoice.id, description="small", quantity=1, unit_price=10),
            InvoiceLine(invoice_id=invoice.id, description="large", quantity=5, unit_price=20),
        ])
        db.commit()

        big = db.query(InvoiceLine).filter(InvoiceLine.line_total > 50).all()
        assert [line.description for line in big] == ["large"]

    def test_container_teu(self, containers):
        assert [c.teu for c in containers] == [Decimal("1"), Decimal("2"), Decimal("2.25")]
        assert ContainerSize(45) is ContainerSize.FT45

    def test_new_rows_get_default_statuses(self, db, customer, route, make_invoice):
        shipment = Shipment(booking_no="BK-DEF", customer_id=customer.id, route_id=route.id)
        db.add(shipment)
        db.commit()

        assert shipment.status == ShipmentStatus.BOOKED
        assert shipment.created_at is not None
        assert make_invoice().status == InvoiceStatus.OPEN
