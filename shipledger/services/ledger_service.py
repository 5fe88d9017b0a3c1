"""
Ledger Service: create / read / update / delete for every ledger entity

All writes go through the same pipeline:
  1. coerce + field/row rules (ValidationService)
  2. uniqueness of natural keys
  3. existence of every referenced row
  4. shipment / invoice lifecycle rules
  5. one atomic commit

Deleting a Shipment or an Invoice removes its dependent rows in the same
transaction; deleting a row that is still referenced by a non-cascading
foreign key is refused.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from shipledger.exceptions import (
    ConstraintViolation,
    ForeignKeyViolation,
    InvalidTransition,
    NotFound,
)
from shipledger.models.base import Base
from shipledger.models.billing import Invoice, InvoiceLine, InvoiceStatus, Payment
from shipledger.models.shipment import (
    CLOSED_SHIPMENT_STATUSES,
    SHIPMENT_TRANSITIONS,
    Shipment,
    ShipmentContainer,
    ShipmentStatus,
    TrackingEvent,
)
from shipledger.services.transaction import atomic
from shipledger.services.validation_service import ValidationService
from shipledger.utils.logger import audit, log


# Written only through TrackingService.record_event, removed only by cascade
APPEND_ONLY_MODELS = {TrackingEvent}


def model_for_table(table):
    """Mapped class for a Table object."""
    for mapper in Base.registry.mappers:
        if mapper.local_table is table:
            return mapper.class_
    raise LookupError(f"No model mapped to table {table.name}")


class LedgerService:
    def __init__(self, db: Session, validator: Optional[ValidationService] = None):
        self.db = db
        self.validator = validator or ValidationService()

    # ==================== READ ====================

    def get(self, model, entity_id: Any):
        """Fetch a row by primary key or raise NotFound."""
        obj = self.db.get(model, entity_id)
        if obj is None:
            raise NotFound(model.__name__, entity_id)
        return obj

    def list(self, model, **filters) -> List[Any]:
        """List rows of ``model`` matching equality filters, ordered by primary key."""
        query = self.db.query(model)
        for key, value in filters.items():
            if value is not None:
                query = query.filter(getattr(model, key) == value)
        return query.order_by(*sa_inspect(model).primary_key).all()

    # ==================== WRITE ====================

    def create(self, model, **fields):
        """Validate and insert one row. Returns the persisted object."""
        self._guard_append_only(model, "created")
        values = self.validator.validate_create(model, fields)

        with atomic(self.db):
            self.check_unique(model, values)
            self.check_references(model, values)
            self._check_create_lifecycle(model, values)

            obj = model(**values)
            self.db.add(obj)
            self.db.flush()
            self._after_write(obj)

        audit(model.__name__, "create", f"{self._identity(obj)} {sorted(values)}")
        return obj

    def update(self, model, entity_id: Any, **changes):
        """Validate ``changes`` against the stored row and apply them."""
        self._guard_append_only(model, "modified")
        obj = self.get(model, entity_id)
        current = self._row_values(obj)
        values = self.validator.validate_update(model, current, changes)
        changed = {k: v for k, v in values.items() if current.get(k) != v}
        if not changed:
            return obj

        with atomic(self.db):
            self.check_unique(model, changed, exclude=obj)
            self.check_references(model, changed)
            self._check_update_lifecycle(obj, current, changed)

            for key, value in changed.items():
                setattr(obj, key, value)
            self.db.flush()
            self._after_write(obj, previous=current)

        audit(model.__name__, "update", f"{self._identity(obj)} {sorted(changed)}")
        return obj

    def delete(self, model, entity_id: Any) -> Dict[str, int]:
        """
        Delete a row and everything that cascades from it, atomically.

        Returns the number of rows removed per table.
        """
        self._guard_append_only(model, "deleted")
        obj = self.get(model, entity_id)
        self._check_restricting_references(obj)

        removed = self._cascade_counts(obj)
        previous = self._row_values(obj)

        with atomic(self.db):
            self.db.delete(obj)
            self.db.flush()
            if isinstance(obj, Payment):
                self._sync_invoice_status(previous["invoice_id"])

        audit(model.__name__, "delete", f"{entity_id} removed {removed}")
        return removed

    # ==================== CHECKS ====================

    def _guard_append_only(self, model, verb: str) -> None:
        if model in APPEND_ONLY_MODELS:
            raise InvalidTransition(
                f"{model.__name__} rows are append-only and cannot be {verb} directly",
                {"entity": model.__name__},
            )

    def check_unique(self, model, values: Dict[str, Any], exclude=None) -> None:
        mapper = sa_inspect(model)
        pk_columns = mapper.primary_key

        if exclude is None and all(values.get(c.key) is not None for c in pk_columns):
            identity = tuple(values[c.key] for c in pk_columns)
            if self.db.get(model, identity if len(identity) > 1 else identity[0]) is not None:
                raise ConstraintViolation(pk_columns[-1].key, identity, f"{model.__name__} already exists")

        for column in mapper.columns:
            if not column.unique or column.key not in values or values[column.key] is None:
                continue
            query = self.db.query(model).filter(getattr(model, column.key) == values[column.key])
            if exclude is not None:
                for pk in pk_columns:
                    query = query.filter(getattr(model, pk.key) != getattr(exclude, pk.key))
            if query.first() is not None:
                raise ConstraintViolation(column.key, values[column.key], "must be unique")

    def check_references(self, model, values: Dict[str, Any]) -> None:
        for column in sa_inspect(model).columns:
            value = values.get(column.key)
            if value is None:
                continue
            for fk in column.foreign_keys:
                target = model_for_table(fk.column.table)
                if self.db.get(target, value) is None:
                    raise ForeignKeyViolation(column.key, value, target.__name__)

    def _check_restricting_references(self, obj) -> None:
        """Refuse to delete a row that a non-cascading foreign key still points at."""
        table = obj.__table__
        for other in Base.metadata.sorted_tables:
            for fk in other.foreign_keys:
                if fk.column.table is not table or (fk.ondelete or "").upper() == "CASCADE":
                    continue
                pk_value = getattr(obj, fk.column.key)
                count = self.db.execute(
                    select(func.count()).select_from(other).where(fk.parent == pk_value)
                ).scalar()
                if count:
                    raise ConstraintViolation(
                        fk.parent.name,
                        pk_value,
                        f"{type(obj).__name__} is still referenced by {count} {other.name} row(s)",
                    )

    def _check_create_lifecycle(self, model, values: Dict[str, Any]) -> None:
        if model is Invoice and values.get("status", InvoiceStatus.OPEN) != InvoiceStatus.OPEN:
            raise InvalidTransition("Invoices are created OPEN", {"status": values["status"].value})

        # Historical rows enter through ImportService.import_shipments
        if model is Shipment:
            if values.get("status", ShipmentStatus.BOOKED) != ShipmentStatus.BOOKED:
                raise InvalidTransition("Shipments are created BOOKED", {"status": values["status"].value})
            if values.get("delivered_at") is not None:
                raise InvalidTransition("delivered_at is set by a DELIVERED tracking event")

        if model in (Payment, InvoiceLine):
            invoice = self.db.get(Invoice, values["invoice_id"])
            if invoice.status == InvoiceStatus.VOID:
                raise InvalidTransition(
                    f"Invoice {invoice.invoice_no} is VOID and accepts no {model.__tablename__}",
                    {"invoice_id": invoice.id},
                )

        if model is ShipmentContainer:
            shipment = self.db.get(Shipment, values["shipment_id"])
            if shipment.status in CLOSED_SHIPMENT_STATUSES:
                raise InvalidTransition(
                    f"Shipment {shipment.booking_no} is {shipment.status.value}; containers are frozen",
                    {"shipment_id": shipment.id},
                )
            self.check_container_available(values["container_id"])

    def check_container_available(self, container_id: int) -> None:
        """A container can be on at most one open (BOOKED / IN_TRANSIT) shipment."""
        busy = (
            self.db.query(Shipment)
            .join(ShipmentContainer, ShipmentContainer.shipment_id == Shipment.id)
            .filter(
                ShipmentContainer.container_id == container_id,
                Shipment.status.notin_(list(CLOSED_SHIPMENT_STATUSES)),
            )
            .first()
        )
        if busy is not None:
            raise ConstraintViolation(
                "container_id", container_id, f"already on open shipment {busy.booking_no}"
            )

    def _check_update_lifecycle(self, obj, current: Dict[str, Any], changed: Dict[str, Any]) -> None:
        if isinstance(obj, Shipment):
            if "delivered_at" in changed:
                raise InvalidTransition("delivered_at is set by a DELIVERED tracking event")
            if "status" in changed:
                old, new = current["status"], changed["status"]
                if new == ShipmentStatus.DELIVERED:
                    raise InvalidTransition("Shipments become DELIVERED through a DELIVERED tracking event")
                if new not in SHIPMENT_TRANSITIONS[old]:
                    raise InvalidTransition(
                        f"Shipment {obj.booking_no} cannot move from {old.value} to {new.value}",
                        {"from": old.value, "to": new.value},
                    )

        if isinstance(obj, Invoice) and "status" in changed:
            new = changed["status"]
            if current["status"] == InvoiceStatus.VOID:
                raise InvalidTransition(f"Invoice {obj.invoice_no} is VOID")
            if new != InvoiceStatus.VOID:
                raise InvalidTransition(
                    "Invoice status is derived from its payments; only VOID can be set",
                    {"to": new.value},
                )
            if obj.payments:
                raise InvalidTransition(
                    f"Invoice {obj.invoice_no} has payments and cannot be voided",
                    {"payments": len(obj.payments)},
                )

        if isinstance(obj, Payment):
            for invoice_id in {current["invoice_id"], changed.get("invoice_id", current["invoice_id"])}:
                invoice = self.db.get(Invoice, invoice_id)
                if invoice.status == InvoiceStatus.VOID:
                    raise InvalidTransition(f"Invoice {invoice.invoice_no} is VOID and accepts no payments")

    # ==================== SIDE EFFECTS ====================

    def _after_write(self, obj, previous: Optional[Dict[str, Any]] = None) -> None:
        if isinstance(obj, Payment):
            self._sync_invoice_status(obj.invoice_id)
            if previous and previous["invoice_id"] != obj.invoice_id:
                self._sync_invoice_status(previous["invoice_id"])
        elif isinstance(obj, Invoice) and previous is not None:
            self._sync_invoice_status(obj.id)

    def _sync_invoice_status(self, invoice_id: int) -> None:
        invoice = self.db.get(Invoice, invoice_id)
        if invoice is None:
            return
        self.db.expire(invoice, ["payments"])
        status = invoice.derive_status()
        if status != invoice.status:
            log.info(f"Invoice {invoice.invoice_no}: {invoice.status.value} -> {status.value}")
            invoice.status = status
            self.db.flush()

    # ==================== HELPERS ====================

    def _cascade_counts(self, obj) -> Dict[str, int]:
        removed = {obj.__tablename__: 1}
        if isinstance(obj, Shipment):
            removed[TrackingEvent.__tablename__] = len(obj.events)
            removed[ShipmentContainer.__tablename__] = len(obj.container_links)
        elif isinstance(obj, Invoice):
            removed["invoice_lines"] = len(obj.lines)
            removed["payments"] = len(obj.payments)
        return removed

    @staticmethod
    def _row_values(obj) -> Dict[str, Any]:
        return {c.key: getattr(obj, c.key) for c in sa_inspect(type(obj)).columns}

    @staticmethod
    def _identity(obj) -> Any:
        identity = sa_inspect(obj).identity
        if identity is None:
            return None
        return identity[0] if len(identity) == 1 else identity
