"""
Shipment Data Models

Containers, shipments, the shipment/container association and the
append-only tracking event log.
"""
import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey, CheckConstraint, Enum
)
from sqlalchemy.orm import relationship
from shipledger.models.base import Base


class ShipmentStatus(str, enum.Enum):
    BOOKED = "BOOKED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class TrackingEventType(str, enum.Enum):
    LOADED = "LOADED"
    DEPARTED = "DEPARTED"
    ARRIVED = "ARRIVED"
    CUSTOMS = "CUSTOMS"
    DELIVERED = "DELIVERED"


class ContainerSize(enum.IntEnum):
    """Nominal container length in feet"""
    FT20 = 20
    FT40 = 40
    FT45 = 45


# Twenty-foot equivalent units per container size
TEU_FACTORS = {
    ContainerSize.FT20: Decimal("1"),
    ContainerSize.FT40: Decimal("2"),
    ContainerSize.FT45: Decimal("2.25"),
}

# Manual status changes allowed through update(); DELIVERED only comes from a tracking event
SHIPMENT_TRANSITIONS = {
    ShipmentStatus.BOOKED: {ShipmentStatus.IN_TRANSIT, ShipmentStatus.CANCELLED},
    ShipmentStatus.IN_TRANSIT: {ShipmentStatus.CANCELLED},
    ShipmentStatus.DELIVERED: set(),
    ShipmentStatus.CANCELLED: set(),
}

CLOSED_SHIPMENT_STATUSES = {ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED}


class Container(Base):
    """Physical container identified by its ISO 6346 number"""
    __tablename__ = "containers"
    __table_args__ = (
        CheckConstraint("size IN (20, 40, 45)", name="ck_containers_size"),
    )

    id = Column(Integer, primary_key=True, index=True)
    container_no = Column(String(11), unique=True, index=True, nullable=False)
    size = Column(Integer, nullable=False)
    type_code = Column(String(10), nullable=False)  # DRY, REEFER, OPEN_TOP, 22G1, ...

    shipment_links = relationship("ShipmentContainer", back_populates="container")

    @property
    def teu(self) -> Decimal:
        return TEU_FACTORS[ContainerSize(self.size)]

    def __repr__(self):
        return f"<Container {self.container_no} ({self.size}' {self.type_code})>"


class Shipment(Base):
    """
    Booking of cargo for one customer on one route.

    Central entity of the ledger: containers and tracking events hang off
    it and are removed with it.
    """
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    booking_no = Column(String(32), unique=True, index=True, nullable=False)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=False, index=True)
    vessel_id = Column(Integer, ForeignKey("vessels.id"), nullable=True, index=True)

    status = Column(
        Enum(ShipmentStatus, name="shipment_status", create_constraint=True),
        nullable=False,
        default=ShipmentStatus.BOOKED,
        index=True,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    delivered_at = Column(DateTime, nullable=True)

    customer = relationship("Customer", back_populates="shipments")
    route = relationship("Route", back_populates="shipments")
    vessel = relationship("Vessel", back_populates="shipments")

    container_links = relationship(
        "ShipmentContainer",
        back_populates="shipment",
        cascade="all, delete-orphan",
    )
    events = relationship(
        "TrackingEvent",
        back_populates="shipment",
        cascade="all, delete-orphan",
        order_by="TrackingEvent.event_time",
    )

    @property
    def containers(self):
        return [link.container for link in self.container_links]

    @property
    def total_teu(self) -> Decimal:
        return sum((c.teu for c in self.containers), Decimal("0"))

    def __repr__(self):
        return f"<Shipment {self.booking_no} [{self.status}]>"


class ShipmentContainer(Base):
    """Shipment <-> container association (composite identity)"""
    __tablename__ = "shipment_containers"

    shipment_id = Column(
        Integer, ForeignKey("shipments.id", ondelete="CASCADE"), primary_key=True
    )
    container_id = Column(Integer, ForeignKey("containers.id"), primary_key=True, index=True)

    shipment = relationship("Shipment", back_populates="container_links")
    container = relationship("Container", back_populates="shipment_links")

    def __repr__(self):
        return f"<ShipmentContainer {self.shipment_id}/{self.container_id}>"


class TrackingEvent(Base):
    """Timestamped milestone of a shipment. Never edited once written."""
    __tablename__ = "tracking_events"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(
        Integer, ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type = Column(
        Enum(TrackingEventType, name="tracking_event_type", create_constraint=True),
        nullable=False,
    )
    event_time = Column(DateTime, nullable=False, index=True)
    port_id = Column(Integer, ForeignKey("ports.id"), nullable=True)
    notes = Column(Text, nullable=True)

    shipment = relationship("Shipment", back_populates="events")
    port = relationship("Port")

    def __repr__(self):
        return f"<TrackingEvent {self.event_type} @ {self.event_time} (shipment {self.shipment_id})>"
