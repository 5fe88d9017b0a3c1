"""
Tracking Service: append-only shipment milestones

Recording an event is the only way a shipment moves forward:
  LOADED                      -> status unchanged
  DEPARTED / ARRIVED / CUSTOMS -> BOOKED becomes IN_TRANSIT
  DELIVERED                   -> status DELIVERED, delivered_at = event time

The event insert and the shipment update commit together.
"""
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from shipledger.exceptions import ForeignKeyViolation, InvalidTransition, NotFound
from shipledger.models.network import Port
from shipledger.models.shipment import (
    CLOSED_SHIPMENT_STATUSES,
    Shipment,
    ShipmentStatus,
    TrackingEvent,
    TrackingEventType,
)
from shipledger.services.transaction import atomic
from shipledger.services.validation_service import ValidationService
from shipledger.utils.logger import audit, log


IN_TRANSIT_EVENTS = {
    TrackingEventType.DEPARTED,
    TrackingEventType.ARRIVED,
    TrackingEventType.CUSTOMS,
}


class TrackingService:
    def __init__(self, db: Session, validator: Optional[ValidationService] = None):
        self.db = db
        self.validator = validator or ValidationService()

    def record_event(
        self,
        shipment_id: int,
        event_type: Union[TrackingEventType, str],
        event_time: Union[datetime, str],
        port_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> TrackingEvent:
        """
        Append a tracking event to a shipment and apply its status effect.

        Raises:
            InvalidTransition: shipment missing, or already DELIVERED/CANCELLED
            ForeignKeyViolation: port_id does not exist
            ConstraintViolation: bad event type or timestamp
        """
        values = self.validator.validate_create(
            TrackingEvent,
            {
                "shipment_id": shipment_id,
                "event_type": event_type,
                "event_time": event_time,
                "port_id": port_id,
                "notes": notes,
            },
        )

        shipment = self.db.get(Shipment, values["shipment_id"])
        if shipment is None:
            raise InvalidTransition(
                f"Cannot record {values['event_type'].value} for unknown shipment {shipment_id}",
                {"shipment_id": shipment_id},
            )
        if shipment.status in CLOSED_SHIPMENT_STATUSES:
            log.warning(f"Rejected {values['event_type'].value} event for {shipment.booking_no} ({shipment.status.value})")
            raise InvalidTransition(
                f"Shipment {shipment.booking_no} is {shipment.status.value} and accepts no further events",
                {"shipment_id": shipment.id, "status": shipment.status.value},
            )
        if values.get("port_id") is not None and self.db.get(Port, values["port_id"]) is None:
            raise ForeignKeyViolation("port_id", values["port_id"], "Port")

        with atomic(self.db):
            event = TrackingEvent(**values)
            shipment.events.append(event)
            self._apply_status_effect(shipment, event)
            self.db.flush()

        audit("TrackingEvent", "append", f"{shipment.booking_no}: {event.event_type.value} at {event.event_time} -> {shipment.status.value}")
        return event

    def _apply_status_effect(self, shipment: Shipment, event: TrackingEvent) -> None:
        if event.event_type == TrackingEventType.DELIVERED:
            shipment.status = ShipmentStatus.DELIVERED
            shipment.delivered_at = event.event_time
        elif event.event_type in IN_TRANSIT_EVENTS and shipment.status == ShipmentStatus.BOOKED:
            shipment.status = ShipmentStatus.IN_TRANSIT

    def shipment_timeline(self, shipment_id: int) -> List[TrackingEvent]:
        """Events of a shipment in chronological order (ties by insertion order)."""
        if self.db.get(Shipment, shipment_id) is None:
            raise NotFound("Shipment", shipment_id)
        return (
            self.db.query(TrackingEvent)
            .filter(TrackingEvent.shipment_id == shipment_id)
            .order_by(TrackingEvent.event_time, TrackingEvent.id)
            .all()
        )
