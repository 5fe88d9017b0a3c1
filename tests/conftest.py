"""
Shared fixtures for the ledger tests.

Every test gets its own in-memory SQLite database (StaticPool keeps the
single connection alive across sessions and threads) with foreign keys
enforced, plus a few builders for the master data most tests need.
"""
import os
from datetime import date
from decimal import Decimal

# Keep the module-level engine and the log sinks off the disk
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_DIR", "")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shipledger.models import Container, Customer, Invoice, Port, Route
from shipledger.models.base import Base
from shipledger.services.ledger_service import LedgerService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ledger(db):
    return LedgerService(db)


# ────────────────────────────────────────────
# BUILDERS
# ────────────────────────────────────────────


@pytest.fixture
def ports(ledger):
    """Shanghai, Los Angeles and Rotterdam keyed by code."""
    return {
        "CNSHA": ledger.create(Port, code="CNSHA", name="Shanghai", country="CN", timezone="Asia/Shanghai"),
        "USLAX": ledger.create(Port, code="USLAX", name="Los Angeles", country="US", timezone="America/Los_Angeles"),
        "NLRTM": ledger.create(Port, code="NLRTM", name="Rotterdam", country="NL", timezone="Europe/Amsterdam"),
    }


@pytest.fixture
def customer(ledger):
    return ledger.create(Customer, name="Acme Corp", email="ops@acme.example")


@pytest.fixture
def route(ledger, ports):
    """Shanghai -> Los Angeles, planned arrival 2024-03-10."""
    return ledger.create(
        Route,
        origin_port_id=ports["CNSHA"].id,
        dest_port_id=ports["USLAX"].id,
        planned_departure_date=date(2024, 2, 20),
        planned_arrival_date=date(2024, 3, 10),
    )


@pytest.fixture
def containers(ledger):
    """One container of each size: 20', 40', 45'."""
    return [
        ledger.create(Container, container_no="MSCU1234560", size=20, type_code="DRY"),
        ledger.create(Container, container_no="MSCU1234561", size=40, type_code="DRY"),
        ledger.create(Container, container_no="MAEU7654321", size=45, type_code="REEFER"),
    ]


@pytest.fixture
def make_invoice(ledger, customer):
    """Factory for OPEN invoices of the test customer."""
    counter = {"n": 0}

    def _make(total_amount="100.00", **fields):
        counter["n"] += 1
        values = {
            "invoice_no": f"INV-{counter['n']:04d}",
            "customer_id": customer.id,
            "issue_date": date(2024, 3, 1),
            "due_date": date(2024, 3, 31),
            "total_amount": Decimal(total_amount),
        }
        values.update(fields)
        return ledger.create(Invoice, **values)

    return _make


@pytest.fixture
def client(db):
    """FastAPI TestClient bound to the test session."""
    from fastapi.testclient import TestClient
    from shipledger.main import app
    from shipledger.models.base import get_db

    def _get_test_db():
        yield db

    app.dependency_overrides[get_db] = _get_test_db
    yield TestClient(app)
    app.dependency_overrides.clear()
