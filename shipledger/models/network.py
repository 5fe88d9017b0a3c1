"""
Network data models

Ports, vessels and the planned port-to-port routes that shipments travel.
"""
from sqlalchemy import Column, Integer, String, Date, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from shipledger.models.base import Base


class Port(Base):
    """Port identified by its UN/LOCODE (e.g. NLRTM, SGSIN)"""
    __tablename__ = "ports"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(5), unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=False)
    country = Column(String(2), nullable=False)  # ISO 3166 alpha-2
    timezone = Column(String(64), nullable=False)  # IANA zone, e.g. Europe/Amsterdam

    def __repr__(self):
        return f"<Port {self.code}: {self.name}>"


class Vessel(Base):
    """Ocean vessel; capacity in TEU"""
    __tablename__ = "vessels"
    __table_args__ = (
        CheckConstraint("capacity_teu >= 0", name="ck_vessels_capacity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    imo_number = Column(String(7), unique=True, index=True, nullable=False)
    capacity_teu = Column(Integer, nullable=False, default=0)
    flag = Column(String(2), nullable=True)

    shipments = relationship("Shipment", back_populates="vessel")

    def __repr__(self):
        return f"<Vessel {self.name} (IMO {self.imo_number})>"


class Route(Base):
    """
    Planned port-to-port leg.

    Origin and destination must differ; the planned arrival date is the
    yardstick for the on-time delivery report.
    """
    __tablename__ = "routes"
    __table_args__ = (
        CheckConstraint("origin_port_id <> dest_port_id", name="ck_routes_distinct_ports"),
        CheckConstraint(
            "planned_arrival_date >= planned_departure_date",
            name="ck_routes_arrival_after_departure",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    origin_port_id = Column(Integer, ForeignKey("ports.id"), nullable=False, index=True)
    dest_port_id = Column(Integer, ForeignKey("ports.id"), nullable=False, index=True)
    planned_departure_date = Column(Date, nullable=False)
    planned_arrival_date = Column(Date, nullable=False, index=True)

    origin_port = relationship("Port", foreign_keys=[origin_port_id])
    dest_port = relationship("Port", foreign_keys=[dest_port_id])
    shipments = relationship("Shipment", back_populates="route")

    def __repr__(self):
        return f"<Route {self.id}: {self.origin_port_id} -> {self.dest_port_id} ({self.planned_arrival_date})>"
