"""
Shipments API

Booking, container assignment, tracking events and cancellation.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel

from shipledger.exceptions import ConstraintViolation
from shipledger.models.base import get_db
from shipledger.models.shipment import Shipment, ShipmentStatus
from shipledger.services.ledger_service import LedgerService
from shipledger.services.shipment_service import ShipmentService
from shipledger.services.tracking_service import TrackingService
from shipledger.utils.helpers import row_to_dict

router = APIRouter(prefix="/shipments", tags=["shipments"])


class BookingCreate(BaseModel):
    booking_no: str
    customer_id: int
    route_id: int
    vessel_id: Optional[int] = None
    container_ids: List[int] = []


class TrackingEventCreate(BaseModel):
    event_type: str  # LOADED, DEPARTED, ARRIVED, CUSTOMS, DELIVERED
    event_time: datetime
    port_id: Optional[int] = None
    notes: Optional[str] = None


def _shipment_detail(shipment: Shipment) -> dict:
    data = row_to_dict(shipment)
    data["containers"] = [row_to_dict(c, extra=("teu",)) for c in shipment.containers]
    data["total_teu"] = shipment.total_teu
    return data


@router.post("", status_code=201)
async def book_shipment(booking: BookingCreate, db: Session = Depends(get_db)):
    """Book a shipment and attach its containers in one step."""
    shipment = ShipmentService(db).book_shipment(
        booking_no=booking.booking_no,
        customer_id=booking.customer_id,
        route_id=booking.route_id,
        vessel_id=booking.vessel_id,
        container_ids=booking.container_ids,
    )
    return {"success": True, "data": _shipment_detail(shipment)}


@router.get("")
async def list_shipments(
    status: Optional[str] = Query(None, description="BOOKED, IN_TRANSIT, DELIVERED or CANCELLED"),
    customer_id: Optional[int] = Query(None),
    db: Session = Depends(get_db)
):
    filters = {"customer_id": customer_id}
    if status:
        name = status.strip().upper()
        if name not in ShipmentStatus.__members__:
            raise ConstraintViolation("status", status, "unknown shipment status")
        filters["status"] = ShipmentStatus[name]
    rows = LedgerService(db).list(Shipment, **filters)
    return {
        "success": True,
        "data": {
            "shipments": [row_to_dict(s) for s in rows],
            "count": len(rows),
        }
    }


@router.get("/{shipment_id}")
async def get_shipment(shipment_id: int, db: Session = Depends(get_db)):
    shipment = LedgerService(db).get(Shipment, shipment_id)
    return {"success": True, "data": _shipment_detail(shipment)}


@router.post("/{shipment_id}/events", status_code=201)
async def record_event(shipment_id: int, event: TrackingEventCreate, db: Session = Depends(get_db)):
    """
    Record a tracking milestone.

    A DELIVERED event closes the shipment and stamps delivered_at.
    """
    recorded = TrackingService(db).record_event(
        shipment_id=shipment_id,
        event_type=event.event_type,
        event_time=event.event_time,
        port_id=event.port_id,
        notes=event.notes,
    )
    shipment = recorded.shipment
    return {
        "success": True,
        "data": {
            "event": row_to_dict(recorded),
            "shipment_status": shipment.status.value,
            "delivered_at": shipment.delivered_at,
        }
    }


@router.get("/{shipment_id}/timeline")
async def get_timeline(shipment_id: int, db: Session = Depends(get_db)):
    events = TrackingService(db).shipment_timeline(shipment_id)
    return {
        "success": True,
        "data": {
            "events": [row_to_dict(e) for e in events],
            "count": len(events),
        }
    }


@router.post("/{shipment_id}/containers/{container_id}", status_code=201)
async def attach_container(shipment_id: int, container_id: int, db: Session = Depends(get_db)):
    link = ShipmentService(db).attach_container(shipment_id, container_id)
    return {"success": True, "data": row_to_dict(link)}


@router.delete("/{shipment_id}/containers/{container_id}")
async def detach_container(shipment_id: int, container_id: int, db: Session = Depends(get_db)):
    ShipmentService(db).detach_container(shipment_id, container_id)
    return {"success": True}


@router.post("/{shipment_id}/cancel")
async def cancel_shipment(shipment_id: int, db: Session = Depends(get_db)):
    shipment = ShipmentService(db).cancel_shipment(shipment_id)
    return {"success": True, "data": row_to_dict(shipment)}


@router.delete("/{shipment_id}")
async def delete_shipment(shipment_id: int, db: Session = Depends(get_db)):
    """Delete a shipment together with its container links and tracking events."""
    removed = LedgerService(db).delete(Shipment, shipment_id)
    return {"success": True, "data": {"removed": removed}}
