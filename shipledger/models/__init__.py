"""Database models for the Shipping Ledger"""

from shipledger.models.customer import Customer

from shipledger.models.network import (
    Port,
    Vessel,
    Route
)

from shipledger.models.shipment import (
    Container,
    ContainerSize,
    Shipment,
    ShipmentContainer,
    ShipmentStatus,
    TrackingEvent,
    TrackingEventType
)

from shipledger.models.billing import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Payment,
    PaymentMethod
)
