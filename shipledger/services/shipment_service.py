"""
Shipment Service

Booking workflow on top of the generic ledger: a booking creates the
shipment in BOOKED status together with its container assignments, in a
single transaction.
"""
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from shipledger.exceptions import ConstraintViolation, ForeignKeyViolation, InvalidTransition
from shipledger.models.shipment import (
    CLOSED_SHIPMENT_STATUSES,
    Container,
    Shipment,
    ShipmentContainer,
    ShipmentStatus,
)
from shipledger.services.ledger_service import LedgerService
from shipledger.services.transaction import atomic
from shipledger.utils.logger import audit


class ShipmentService:
    def __init__(self, db: Session, ledger: Optional[LedgerService] = None):
        self.db = db
        self.ledger = ledger or LedgerService(db)

    def book_shipment(
        self,
        booking_no: str,
        customer_id: int,
        route_id: int,
        vessel_id: Optional[int] = None,
        container_ids: Iterable[int] = (),
    ) -> Shipment:
        """
        Create a BOOKED shipment and attach its containers atomically.

        Either the shipment and every container link are stored, or nothing is.
        """
        container_ids = list(container_ids)
        if len(set(container_ids)) != len(container_ids):
            raise ConstraintViolation("container_ids", container_ids, "contains duplicates")

        values = self.ledger.validator.validate_create(
            Shipment,
            {
                "booking_no": booking_no,
                "customer_id": customer_id,
                "route_id": route_id,
                "vessel_id": vessel_id,
                "status": ShipmentStatus.BOOKED,
            },
        )

        with atomic(self.db):
            self.ledger.check_unique(Shipment, values)
            self.ledger.check_references(Shipment, values)

            shipment = Shipment(**values)
            for container_id in container_ids:
                container = self.db.get(Container, container_id)
                if container is None:
                    raise ForeignKeyViolation("container_id", container_id, "Container")
                self.ledger.check_container_available(container_id)
                shipment.container_links.append(ShipmentContainer(container=container))

            self.db.add(shipment)
            self.db.flush()

        audit("Shipment", "book", f"{shipment.booking_no} with {len(container_ids)} container(s)")
        return shipment

    def attach_container(self, shipment_id: int, container_id: int) -> ShipmentContainer:
        return self.ledger.create(ShipmentContainer, shipment_id=shipment_id, container_id=container_id)

    def detach_container(self, shipment_id: int, container_id: int) -> None:
        shipment = self.ledger.get(Shipment, shipment_id)
        if shipment.status in CLOSED_SHIPMENT_STATUSES:
            raise InvalidTransition(
                f"Shipment {shipment.booking_no} is {shipment.status.value}; containers are frozen",
                {"shipment_id": shipment_id},
            )
        self.ledger.delete(ShipmentContainer, (shipment_id, container_id))

    def cancel_shipment(self, shipment_id: int) -> Shipment:
        return self.ledger.update(Shipment, shipment_id, status=ShipmentStatus.CANCELLED)

    def assign_vessel(self, shipment_id: int, vessel_id: Optional[int]) -> Shipment:
        return self.ledger.update(Shipment, shipment_id, vessel_id=vessel_id)

    def teu_for_shipment(self, shipment_id: int) -> Decimal:
        """Total twenty-foot equivalent units booked on a shipment."""
        return self.ledger.get(Shipment, shipment_id).total_teu
