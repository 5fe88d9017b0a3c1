"""
Seed Data CSV Import Service

Bulk-loads ports, routes and shipments from CSV (see samples/*.csv).
Rows refer to each other by natural keys (port code, customer name,
booking number) rather than database ids. Every row goes through the
ledger's validation; a bad row is reported and skipped, good rows are kept.
"""
import csv
import io
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from shipledger.exceptions import LedgerError
from shipledger.models.customer import Customer
from shipledger.models.network import Port, Route, Vessel
from shipledger.models.shipment import Shipment
from shipledger.services.ledger_service import LedgerService
from shipledger.services.transaction import atomic
from shipledger.utils.logger import audit, log


# Map common CSV column names to our fields
PORT_COLUMNS = {
    'code': 'code',
    'port_code': 'code',
    'locode': 'code',
    'un_locode': 'code',
    'name': 'name',
    'port_name': 'name',
    'country': 'country',
    'country_code': 'country',
    'timezone': 'timezone',
    'tz': 'timezone',
    'time_zone': 'timezone',
}

ROUTE_COLUMNS = {
    'origin': 'origin',
    'origin_port': 'origin',
    'origin_code': 'origin',
    'pol': 'origin',
    'destination': 'destination',
    'dest': 'destination',
    'dest_port': 'destination',
    'dest_code': 'destination',
    'pod': 'destination',
    'planned_departure_date': 'planned_departure_date',
    'planned_departure': 'planned_departure_date',
    'departure': 'planned_departure_date',
    'etd': 'planned_departure_date',
    'planned_arrival_date': 'planned_arrival_date',
    'planned_arrival': 'planned_arrival_date',
    'arrival': 'planned_arrival_date',
    'eta': 'planned_arrival_date',
}

SHIPMENT_COLUMNS = {
    'booking_no': 'booking_no',
    'booking': 'booking_no',
    'booking_number': 'booking_no',
    'customer': 'customer',
    'customer_name': 'customer',
    'shipper': 'customer',
    'origin': 'origin',
    'origin_code': 'origin',
    'pol': 'origin',
    'destination': 'destination',
    'dest': 'destination',
    'dest_code': 'destination',
    'pod': 'destination',
    'planned_arrival_date': 'planned_arrival_date',
    'planned_arrival': 'planned_arrival_date',
    'eta': 'planned_arrival_date',
    'vessel_imo': 'vessel_imo',
    'imo': 'vessel_imo',
    'imo_number': 'vessel_imo',
    'status': 'status',
    'created_at': 'created_at',
    'booked_at': 'created_at',
    'delivered_at': 'delivered_at',
}

REQUIRED = {
    'ports': ['code', 'name', 'country', 'timezone'],
    'routes': ['origin', 'destination', 'planned_departure_date', 'planned_arrival_date'],
    'shipments': ['booking_no', 'customer', 'origin', 'destination', 'planned_arrival_date'],
}


class ImportService:
    def __init__(self, db: Session, ledger: Optional[LedgerService] = None):
        self.db = db
        self.ledger = ledger or LedgerService(db)

    # ==================== ENTRY POINTS ====================

    def import_ports(self, csv_content: str) -> Dict:
        """Create or update ports keyed by UN/LOCODE."""
        return self._import('ports', csv_content, PORT_COLUMNS, self._port_row)

    def import_routes(self, csv_content: str) -> Dict:
        """Create routes; an identical origin/destination/schedule is skipped."""
        return self._import('routes', csv_content, ROUTE_COLUMNS, self._route_row)

    def import_shipments(self, csv_content: str) -> Dict:
        """Create shipments keyed by booking number; customers are created on first sight."""
        return self._import('shipments', csv_content, SHIPMENT_COLUMNS, self._shipment_row)

    # ==================== PIPELINE ====================

    def _import(self, kind: str, csv_content: str, aliases: Dict[str, str], handler) -> Dict:
        rows = list(csv.DictReader(io.StringIO(csv_content)))

        if not rows:
            return {"success": False, "error": "CSV is empty or has no data rows"}

        column_map = self._map_columns(rows[0].keys(), aliases)
        missing = [f for f in REQUIRED[kind] if f not in column_map]
        if missing:
            return {"success": False, "error": f"Missing required column(s): {', '.join(missing)}"}

        created = 0
        updated = 0
        skipped = 0
        errors: List[str] = []

        for i, raw in enumerate(rows, start=2):  # start=2 for 1-indexed + header
            row = {field: (raw.get(header) or '').strip() for field, header in column_map.items()}
            try:
                result = handler(row)
            except (LedgerError, ValueError) as e:
                errors.append(f"Row {i}: {e}")
                skipped += 1
                continue
            if result == 'created':
                created += 1
            elif result == 'updated':
                updated += 1
            else:
                skipped += 1

        log.info(f"Imported {kind}: {created} created, {updated} updated, {skipped} skipped, {len(errors)} error(s)")
        if errors:
            log.warning(f"{kind} import errors: {errors[:5]}")

        return {
            "success": True,
            "created": created,
            "updated": updated,
            "skipped": skipped,
            "total_rows": len(rows),
            "errors": errors[:20] if errors else [],
        }

    def _map_columns(self, headers, aliases: Dict[str, str]) -> Dict[str, str]:
        """Map CSV headers to our standard field names."""
        column_map = {}
        for header in headers:
            if header is None:
                continue
            normalized = header.strip().lower().replace('-', '_').replace(' ', '_')
            if normalized in aliases:
                our_field = aliases[normalized]
                if our_field not in column_map:  # first match wins
                    column_map[our_field] = header
        return column_map

    # ==================== ROW HANDLERS ====================

    def _port_row(self, row: Dict[str, str]) -> str:
        fields = {k: row[k] for k in ('code', 'name', 'country', 'timezone')}
        existing = self._port_by_code(fields['code'], required=False)
        if existing:
            changes = {k: v for k, v in fields.items() if k != 'code'}
            self.ledger.update(Port, existing.id, **changes)
            return 'updated'
        self.ledger.create(Port, **fields)
        return 'created'

    def _route_row(self, row: Dict[str, str]) -> str:
        origin = self._port_by_code(row['origin'])
        dest = self._port_by_code(row['destination'])
        fields = {
            'origin_port_id': origin.id,
            'dest_port_id': dest.id,
            'planned_departure_date': row['planned_departure_date'],
            'planned_arrival_date': row['planned_arrival_date'],
        }
        values = self.ledger.validator.validate_create(Route, fields)
        existing = self.db.query(Route).filter_by(**values).first()
        if existing:
            return 'skipped'
        self.ledger.create(Route, **values)
        return 'created'

    def _shipment_row(self, row: Dict[str, str]) -> str:
        """
        Historical shipments keep their recorded status and delivery time.

        Every check runs before anything is written; a new customer and its
        shipment are then committed together.
        """
        booking_no = row['booking_no'].upper()
        if self.db.query(Shipment).filter(Shipment.booking_no == booking_no).first():
            return 'skipped'

        route = self._route_for(row['origin'], row['destination'], row['planned_arrival_date'])
        customer = self._customer_by_name(row['customer'])

        fields = {
            'booking_no': booking_no,
            'route_id': route.id,
        }
        if customer is not None:
            fields['customer_id'] = customer.id
        if row.get('vessel_imo'):
            vessel = self.db.query(Vessel).filter(Vessel.imo_number == row['vessel_imo']).first()
            if vessel is None:
                raise ValueError(f"Unknown vessel IMO {row['vessel_imo']}")
            fields['vessel_id'] = vessel.id
        for optional in ('status', 'created_at', 'delivered_at'):
            if row.get(optional):
                fields[optional] = row[optional]

        values = self.ledger.validator.validate_create(Shipment, fields, deferred=('customer_id',))
        if customer is None:
            customer = Customer(**self.ledger.validator.validate_create(Customer, {'name': row['customer']}))

        with atomic(self.db):
            self.ledger.check_unique(Shipment, values)
            self.ledger.check_references(Shipment, values)
            shipment = Shipment(customer=customer, **values)
            self.db.add(shipment)
            self.db.flush()

        audit("Shipment", "import", f"{shipment.booking_no} {shipment.status.value} for {customer.name}")
        return 'created'

    # ==================== LOOKUPS ====================

    def _port_by_code(self, code: str, required: bool = True) -> Optional[Port]:
        port = self.db.query(Port).filter(Port.code == code.upper()).first()
        if port is None and required:
            raise ValueError(f"Unknown port code '{code}'")
        return port

    def _route_for(self, origin_code: str, dest_code: str, planned_arrival: str) -> Route:
        origin = self._port_by_code(origin_code)
        dest = self._port_by_code(dest_code)
        arrival = self.ledger.validator.validate_update(
            Route, {}, {'planned_arrival_date': planned_arrival}
        )['planned_arrival_date']
        route = (
            self.db.query(Route)
            .filter(
                Route.origin_port_id == origin.id,
                Route.dest_port_id == dest.id,
                Route.planned_arrival_date == arrival,
            )
            .order_by(Route.id)
            .first()
        )
        if route is None:
            raise ValueError(f"No route {origin_code} -> {dest_code} arriving {planned_arrival}")
        return route

    def _customer_by_name(self, name: str) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.name == name).order_by(Customer.id).first()
