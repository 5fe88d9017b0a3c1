"""
Tests for TrackingService: event recording and the status effects it drives.
"""
from datetime import datetime

import pytest

from shipledger.exceptions import ConstraintViolation, ForeignKeyViolation, InvalidTransition, NotFound
from shipledger.models import Shipment, ShipmentStatus, TrackingEvent, TrackingEventType
from shipledger.services.tracking_service import TrackingService


@pytest.fixture
def tracking(db):
    return TrackingService(db)


@pytest.fixture
def shipment(ledger, customer, route):
    return ledger.create(Shipment, booking_no="BK-3001", customer_id=customer.id, route_id=route.id)


class TestStatusEffects:

    def test_loaded_keeps_booked(self, tracking, shipment):
        tracking.record_event(shipment.id, "LOADED", datetime(2024, 2, 19, 20, 0))
        assert shipment.status == ShipmentStatus.BOOKED

    @pytest.mark.parametrize("event_type", ["DEPARTED", "ARRIVED", "CUSTOMS"])
    def test_movement_puts_shipment_in_transit(self, tracking, shipment, event_type):
        tracking.record_event(shipment.id, event_type, datetime(2024, 2, 20, 6, 0))
        assert shipment.status == ShipmentStatus.IN_TRANSIT
        assert shipment.delivered_at is None

    def test_delivered_event_sets_status_and_time(self, tracking, db, ledger, shipment, ports):
        delivered = datetime(2024, 3, 9, 14, 30)
        event = tracking.record_event(
            shipment.id, TrackingEventType.DELIVERED, delivered, port_id=ports["USLAX"].id, notes="Signed by J. Doe"
        )

        db.expire_all()
        stored = ledger.get(Shipment, shipment.id)
        assert stored.status == ShipmentStatus.DELIVERED
        assert stored.delivered_at == delivered
        assert event.port.code == "USLAX"

    def test_delivered_shipment_accepts_no_more_events(self, tracking, db, shipment):
        tracking.record_event(shipment.id, "DELIVERED", datetime(2024, 3, 9, 14, 30))

        with pytest.raises(InvalidTransition):
            tracking.record_event(shipment.id, "DELIVERED", datetime(2024, 3, 12, 9, 0))

        assert db.query(TrackingEvent).count() == 1
        assert shipment.delivered_at == datetime(2024, 3, 9, 14, 30)

    def test_cancelled_shipment_accepts_no_events(self, tracking, ledger, shipment):
        ledger.update(Shipment, shipment.id, status="CANCELLED")
        with pytest.raises(InvalidTransition):
            tracking.record_event(shipment.id, "LOADED", datetime(2024, 2, 19))


class TestRejectedEvents:

    def test_unknown_shipment(self, tracking):
        with pytest.raises(InvalidTransition):
            tracking.record_event(9999, "LOADED", datetime(2024, 2, 19))

    def test_unknown_port(self, tracking, db, shipment):
        with pytest.raises(ForeignKeyViolation) as exc:
            tracking.record_event(shipment.id, "ARRIVED", datetime(2024, 3, 9), port_id=777)
        assert exc.value.field_name == "port_id"
        assert db.query(TrackingEvent).count() == 0
        assert shipment.status == ShipmentStatus.BOOKED

    def test_bad_event_type(self, tracking, shipment):
        with pytest.raises(ConstraintViolation):
            tracking.record_event(shipment.id, "LOST_AT_SEA", datetime(2024, 3, 9))

    def test_failed_commit_leaves_shipment_untouched(self, tracking, db, ledger, shipment, monkeypatch):
        def failing_commit():
            raise RuntimeError("disk full")

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            tracking.record_event(shipment.id, "DELIVERED", datetime(2024, 3, 9, 14, 30))
        monkeypatch.undo()

        stored = ledger.get(Shipment, shipment.id)
        assert stored.status == ShipmentStatus.BOOKED
        assert stored.delivered_at is None
        assert db.query(TrackingEvent).count() == 0


class TestTimeline:

    def test_events_in_chronological_order(self, tracking, shipment):
        tracking.record_event(shipment.id, "DEPARTED", datetime(2024, 2, 20, 6, 0))
        tracking.record_event(shipment.id, "LOADED", datetime(2024, 2, 19, 22, 0))
        tracking.record_event(shipment.id, "CUSTOMS", datetime(2024, 3, 9, 8, 0))

        timeline = tracking.shipment_timeline(shipment.id)
        assert [e.event_type for e in timeline] == [
            TrackingEventType.LOADED,
            TrackingEventType.DEPARTED,
            TrackingEventType.CUSTOMS,
        ]

    def test_timeline_of_unknown_shipment(self, tracking):
        with pytest.raises(NotFound):
            tracking.shipment_timeline(4242)
