"""
Data Validation Service

Coerces incoming field values to the column types of a ledger model and
checks every field-level and row-level rule before anything reaches the
database. The same rules exist as CHECK / UNIQUE constraints in the schema;
running them here first turns violations into typed errors.
"""
import enum
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytz
from sqlalchemy import Date, DateTime, Enum as SAEnum, Integer, Numeric, String, Text
from sqlalchemy import inspect as sa_inspect

from shipledger.exceptions import ConstraintViolation, MultipleConstraintViolations
from shipledger.models.shipment import ContainerSize, ShipmentStatus


PORT_CODE_RE = re.compile(r"^[A-Z]{2}[A-Z2-9]{3}$")
COUNTRY_RE = re.compile(r"^[A-Z]{2}$")
IMO_RE = re.compile(r"^\d{7}$")
CONTAINER_NO_RE = re.compile(r"^[A-Z]{4}\d{7}$")

# Computed attributes that callers may read but never write
DERIVED_FIELDS = {
    "invoice_lines": {"line_total"},
}

# Natural-key style fields normalized to upper case before validation
UPPERCASE_FIELDS = {
    "ports": {"code", "country"},
    "vessels": {"flag"},
    "containers": {"container_no", "type_code"},
    "shipments": {"booking_no"},
    "invoices": {"invoice_no", "currency"},
}


class ValidationService:
    """
    Centralized validation for all ledger entities.

    ``validate_create`` and ``validate_update`` return the coerced values
    ready to be assigned to the model; any broken rule raises
    ConstraintViolation (or MultipleConstraintViolations when several
    rules fail at once).
    """

    def __init__(self):
        self._row_rules: Dict[str, Callable[[Dict[str, Any]], List[ConstraintViolation]]] = {
            "ports": self._port_rules,
            "vessels": self._vessel_rules,
            "routes": self._route_rules,
            "containers": self._container_rules,
            "shipments": self._shipment_rules,
            "invoices": self._invoice_rules,
            "invoice_lines": self._invoice_line_rules,
            "payments": self._payment_rules,
        }

    # ==================== ENTRY POINTS ====================

    def validate_create(self, model, fields: Dict[str, Any], deferred: Iterable[str] = ()) -> Dict[str, Any]:
        """
        Coerce and validate the fields of a new row.

        ``deferred`` names required columns that will be filled in by a
        relationship at flush time (e.g. invoice_id of a line added to a
        new invoice).
        """
        values, errors = self._coerce(model, fields)

        for column in self._columns(model):
            if column.primary_key and not column.foreign_keys:
                continue
            if column.key not in values and column.default is not None and column.default.is_scalar:
                values[column.key] = column.default.arg
            if column.nullable or column.default is not None or column.server_default is not None:
                continue
            if column.key in deferred:
                continue
            if values.get(column.key) is None and not any(e.field_name == column.key for e in errors):
                errors.append(ConstraintViolation(column.key, None, "is required"))

        if not errors:
            errors.extend(self._run_row_rules(model, values))
        self._raise(errors)
        return values

    def validate_update(self, model, current: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Coerce ``changes`` and validate them merged over ``current``.

        Returns only the coerced changes.
        """
        values, errors = self._coerce(model, changes)

        for key, value in values.items():
            column = self._column(model, key)
            if column is not None and column.primary_key:
                errors.append(ConstraintViolation(key, value, "primary key cannot be changed"))
            elif value is None and column is not None and not column.nullable:
                errors.append(ConstraintViolation(key, None, "is required"))

        if not errors:
            errors.extend(self._run_row_rules(model, {**current, **values}))
        self._raise(errors)
        return values

    # ==================== COERCION ====================

    def _coerce(self, model, fields: Dict[str, Any]):
        table = model.__tablename__
        values: Dict[str, Any] = {}
        errors: List[ConstraintViolation] = []

        for key, raw in fields.items():
            if key in DERIVED_FIELDS.get(table, set()):
                errors.append(ConstraintViolation(key, raw, "is derived and cannot be set"))
                continue
            column = self._column(model, key)
            if column is None:
                errors.append(ConstraintViolation(key, raw, f"unknown field for {table}"))
                continue
            if raw is None:
                values[key] = None
                continue
            try:
                value = self._coerce_value(column, raw)
            except (TypeError, ValueError, InvalidOperation) as e:
                errors.append(ConstraintViolation(key, raw, f"invalid value: {e}"))
                continue
            if isinstance(value, str) and key in UPPERCASE_FIELDS.get(table, set()):
                value = value.upper()
            length = getattr(column.type, "length", None)
            if isinstance(value, str) and length and len(value) > length:
                errors.append(ConstraintViolation(key, raw, f"longer than {length} characters"))
                continue
            values[key] = value

        return values, errors

    def _coerce_value(self, column, raw: Any) -> Any:
        col_type = column.type

        if isinstance(col_type, SAEnum) and col_type.enum_class is not None:
            enum_class = col_type.enum_class
            if isinstance(raw, enum_class):
                return raw
            if isinstance(raw, enum.Enum):
                raw = raw.value
            name = str(raw).strip().upper()
            if name not in enum_class.__members__:
                raise ValueError(f"must be one of {', '.join(enum_class.__members__)}")
            return enum_class[name]

        if isinstance(col_type, Numeric):
            if isinstance(raw, bool):
                raise TypeError("boolean is not a number")
            value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
            if not value.is_finite():
                raise ValueError("not a finite number")
            return value

        if isinstance(col_type, Integer):
            if isinstance(raw, bool):
                raise TypeError("boolean is not an integer")
            if isinstance(raw, int):
                return raw
            if isinstance(raw, float) and raw.is_integer():
                return int(raw)
            if isinstance(raw, str):
                return int(raw.strip())
            raise TypeError(f"expected integer, got {type(raw).__name__}")

        if isinstance(col_type, DateTime):
            if isinstance(raw, datetime):
                return raw
            if isinstance(raw, date):
                return datetime(raw.year, raw.month, raw.day)
            return datetime.fromisoformat(str(raw).strip())

        if isinstance(col_type, Date):
            if isinstance(raw, datetime):
                return raw.date()
            if isinstance(raw, date):
                return raw
            return date.fromisoformat(str(raw).strip())

        if isinstance(col_type, (String, Text)):
            if not isinstance(raw, str):
                raise TypeError(f"expected text, got {type(raw).__name__}")
            value = raw.strip()
            if not value and not column.nullable:
                raise ValueError("blank")
            return value or None

        return raw

    # ==================== ROW RULES ====================

    def _run_row_rules(self, model, values: Dict[str, Any]) -> List[ConstraintViolation]:
        rule = self._row_rules.get(model.__tablename__)
        return rule(values) if rule else []

    def _port_rules(self, v):
        errors = []
        if v.get("code") is not None and not PORT_CODE_RE.match(v["code"]):
            errors.append(ConstraintViolation("code", v["code"], "must be a 5-character UN/LOCODE"))
        if v.get("country") is not None and not COUNTRY_RE.match(v["country"]):
            errors.append(ConstraintViolation("country", v["country"], "must be an ISO 3166 alpha-2 code"))
        if v.get("code") and v.get("country") and PORT_CODE_RE.match(v["code"]) and v["code"][:2] != v["country"]:
            errors.append(ConstraintViolation("code", v["code"], f"does not belong to country {v['country']}"))
        if v.get("timezone") is not None and v["timezone"] not in pytz.all_timezones_set:
            errors.append(ConstraintViolation("timezone", v["timezone"], "unknown time zone"))
        return errors

    def _vessel_rules(self, v):
        errors = []
        if v.get("imo_number") is not None and not IMO_RE.match(v["imo_number"]):
            errors.append(ConstraintViolation("imo_number", v["imo_number"], "must be 7 digits"))
        if v.get("capacity_teu") is not None and v["capacity_teu"] < 0:
            errors.append(ConstraintViolation("capacity_teu", v["capacity_teu"], "must be >= 0"))
        return errors

    def _route_rules(self, v):
        errors = []
        if v.get("origin_port_id") is not None and v.get("origin_port_id") == v.get("dest_port_id"):
            errors.append(ConstraintViolation("dest_port_id", v["dest_port_id"], "must differ from origin_port_id"))
        departure, arrival = v.get("planned_departure_date"), v.get("planned_arrival_date")
        if departure and arrival and arrival < departure:
            errors.append(ConstraintViolation("planned_arrival_date", arrival, "before planned_departure_date"))
        return errors

    def _container_rules(self, v):
        errors = []
        if v.get("container_no") is not None and not CONTAINER_NO_RE.match(v["container_no"]):
            errors.append(ConstraintViolation("container_no", v["container_no"], "must be 4 letters + 7 digits"))
        sizes = {s.value for s in ContainerSize}
        if v.get("size") is not None and v["size"] not in sizes:
            errors.append(ConstraintViolation("size", v["size"], f"must be one of {sorted(sizes)}"))
        return errors

    def _shipment_rules(self, v):
        errors = []
        status, delivered_at = v.get("status"), v.get("delivered_at")
        if delivered_at is not None and status != ShipmentStatus.DELIVERED:
            errors.append(ConstraintViolation("delivered_at", delivered_at, "only a DELIVERED shipment has a delivery time"))
        if status == ShipmentStatus.DELIVERED and delivered_at is None:
            errors.append(ConstraintViolation("status", status.value, "DELIVERED requires delivered_at"))
        return errors

    def _invoice_rules(self, v):
        errors = []
        if v.get("total_amount") is not None and v["total_amount"] < 0:
            errors.append(ConstraintViolation("total_amount", v["total_amount"], "must be >= 0"))
        issue, due = v.get("issue_date"), v.get("due_date")
        if issue and due and due < issue:
            errors.append(ConstraintViolation("due_date", due, "before issue_date"))
        return errors

    def _invoice_line_rules(self, v):
        errors = []
        if v.get("quantity") is not None and v["quantity"] <= 0:
            errors.append(ConstraintViolation("quantity", v["quantity"], "must be > 0"))
        if v.get("unit_price") is not None and v["unit_price"] < 0:
            errors.append(ConstraintViolation("unit_price", v["unit_price"], "must be >= 0"))
        return errors

    def _payment_rules(self, v):
        if v.get("paid_amount") is not None and v["paid_amount"] <= 0:
            return [ConstraintViolation("paid_amount", v["paid_amount"], "must be > 0")]
        return []

    # ==================== HELPERS ====================

    @staticmethod
    def _columns(model):
        return list(sa_inspect(model).columns)

    @staticmethod
    def _column(model, key: str) -> Optional[Any]:
        return sa_inspect(model).columns.get(key)

    @staticmethod
    def _raise(errors: List[ConstraintViolation]) -> None:
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise MultipleConstraintViolations(errors)
