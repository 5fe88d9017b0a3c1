"""
Tests for ImportService using the bundled samples/*.csv files and a few
hand-written broken files.
"""
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from shipledger.models import Customer, Port, Route, Shipment, ShipmentStatus
from shipledger.services.import_service import ImportService
from shipledger.services.report_service import ReportService

SAMPLES = Path(__file__).parent.parent / "samples"


def _sample(name: str) -> str:
    return (SAMPLES / name).read_text(encoding="utf-8")


@pytest.fixture
def importer(db):
    return ImportService(db)


@pytest.fixture
def seeded(importer):
    return {
        "ports": importer.import_ports(_sample("ports.csv")),
        "routes": importer.import_routes(_sample("routes.csv")),
        "shipments": importer.import_shipments(_sample("shipments.csv")),
    }


class TestSampleSeed:

    def test_samples_load_cleanly(self, seeded, db):
        assert seeded["ports"]["created"] == 5
        assert seeded["routes"]["created"] == 4
        assert seeded["shipments"]["created"] == 4
        assert all(r["errors"] == [] for r in seeded.values())

        assert db.query(Customer).count() == 3
        assert db.query(Shipment).filter(Shipment.status == ShipmentStatus.DELIVERED).count() == 2

    def test_shipments_resolved_by_natural_keys(self, seeded, db):
        shipment = db.query(Shipment).filter(Shipment.booking_no == "BK-24002").one()
        assert shipment.customer.name == "Globex Ltd"
        assert shipment.route.origin_port.code == "SGSIN"
        assert shipment.route.dest_port.code == "NLRTM"
        assert shipment.delivered_at == datetime(2024, 3, 22, 8, 15)

    def test_reimport_is_idempotent(self, seeded, importer, db):
        again = {
            "ports": importer.import_ports(_sample("ports.csv")),
            "routes": importer.import_routes(_sample("routes.csv")),
            "shipments": importer.import_shipments(_sample("shipments.csv")),
        }
        assert again["ports"]["updated"] == 5
        assert again["routes"]["skipped"] == 4
        assert again["shipments"]["skipped"] == 4
        assert db.query(Route).count() == 4
        assert db.query(Shipment).count() == 4

    def test_seed_feeds_on_time_report(self, seeded, db):
        rows = ReportService(db).on_time_delivery_rate(date(2024, 3, 1), date(2024, 3, 31))
        assert len(rows) == 1
        assert rows[0].on_time_pct == Decimal("50.00")


class TestBadFiles:

    def test_empty_file(self, importer):
        result = importer.import_ports("code,name,country,timezone\n")
        assert result["success"] is False

    def test_missing_column(self, importer):
        result = importer.import_ports("code,name,country\nUSLAX,Los Angeles,US\n")
        assert result["success"] is False
        assert "timezone" in result["error"]

    def test_aliased_headers(self, importer, db):
        result = importer.import_ports("UN LOCODE,Port Name,Country Code,TZ\nsgsin,Singapore,sg,Asia/Singapore\n")
        assert result["created"] == 1
        assert db.query(Port).one().code == "SGSIN"

    def test_bad_rows_are_reported_and_skipped(self, importer, db):
        csv_text = (
            "code,name,country,timezone\n"
            "USLAX,Los Angeles,US,America/Los_Angeles\n"
            "USNYC,New York,US,America/Gotham\n"
            "XX,Nowhere,XX,UTC\n"
        )
        result = importer.import_ports(csv_text)

        assert result["created"] == 1
        assert result["skipped"] == 2
        assert result["errors"][0].startswith("Row 3:")
        assert result["errors"][1].startswith("Row 4:")
        assert db.query(Port).count() == 1

    def test_route_with_unknown_port(self, importer):
        result = importer.import_routes(
            "origin,destination,planned_departure_date,planned_arrival_date\n"
            "CNSHA,USLAX,2024-02-20,2024-03-10\n"
        )
        assert result["created"] == 0
        assert "Unknown port code" in result["errors"][0]

    def test_shipment_without_matching_route(self, importer):
        importer.import_ports(_sample("ports.csv"))
        result = importer.import_shipments(
            "booking_no,customer,origin,destination,planned_arrival_date\n"
            "BK-9,Acme Corp,CNSHA,USLAX,2031-01-01\n"
        )
        assert result["created"] == 0
        assert "No route" in result["errors"][0]

    def test_bad_shipment_row_leaves_no_customer_behind(self, importer, db):
        importer.import_ports(_sample("ports.csv"))
        importer.import_routes(_sample("routes.csv"))
        result = importer.import_shipments(
            "booking_no,customer,origin,destination,planned_arrival_date,vessel_imo,status\n"
            "BK-1,Brand New Co,CNSHA,USLAX,2024-03-10,,SHIPPED\n"
            "BK-2,Other New Co,CNSHA,USLAX,2024-03-10,1234567,\n"
            "BK-3,Third New Co,CNSHA,USLAX,2024-03-10,,\n"
        )

        assert result["created"] == 1
        assert len(result["errors"]) == 2
        assert result["errors"][0].startswith("Row 2:")
        assert result["errors"][1].startswith("Row 3:")
        assert [c.name for c in db.query(Customer).all()] == ["Third New Co"]
        assert db.query(Shipment).one().customer.name == "Third New Co"

    def test_historical_shipment_with_new_customer(self, importer, db):
        importer.import_ports(_sample("ports.csv"))
        importer.import_routes(_sample("routes.csv"))
        result = importer.import_shipments(
            "booking_no,customer,origin,destination,planned_arrival_date,status,delivered_at\n"
            "BK-5,Umbrella Co,CNSHA,USLAX,2024-03-10,DELIVERED,2024-03-08T10:00:00\n"
            "BK-6,Stark Ltd,CNSHA,USLAX,2024-03-10,DELIVERED,\n"
        )

        assert result["created"] == 1
        assert "delivered_at" in result["errors"][0]
        assert [c.name for c in db.query(Customer).all()] == ["Umbrella Co"]
        shipment = db.query(Shipment).one()
        assert shipment.status == ShipmentStatus.DELIVERED
        assert shipment.delivered_at == datetime(2024, 3, 8, 10, 0)
