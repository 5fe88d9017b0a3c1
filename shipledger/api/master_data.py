"""
Master Data API

Create / read / update / delete for customers, ports, vessels, routes and
containers. All writes run through LedgerService, so the same validation,
uniqueness and reference checks apply as for every other caller.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from shipledger.exceptions import NotFound
from shipledger.models import Container, Customer, Port, Route, Vessel
from shipledger.models.base import get_db
from shipledger.services.ledger_service import LedgerService
from shipledger.utils.helpers import row_to_dict

router = APIRouter(prefix="/master", tags=["master-data"])

MASTER_DATA_MODELS = {
    "customers": Customer,
    "ports": Port,
    "vessels": Vessel,
    "routes": Route,
    "containers": Container,
}


def _model(entity: str):
    model = MASTER_DATA_MODELS.get(entity)
    if model is None:
        raise NotFound("Entity type", entity)
    return model


def _serialize(obj) -> Dict[str, Any]:
    extra = ("teu",) if isinstance(obj, Container) else ()
    return row_to_dict(obj, extra=extra)


@router.get("/{entity}")
async def list_entities(
    entity: str,
    country: Optional[str] = Query(None, description="Ports only: filter by country code"),
    db: Session = Depends(get_db)
):
    """List all rows of a master data entity, ordered by id."""
    model = _model(entity)
    filters = {"country": country.upper()} if country and model is Port else {}
    rows = LedgerService(db).list(model, **filters)
    return {
        "success": True,
        "data": {
            entity: [_serialize(r) for r in rows],
            "count": len(rows),
        }
    }


@router.get("/{entity}/{entity_id}")
async def get_entity(entity: str, entity_id: int, db: Session = Depends(get_db)):
    obj = LedgerService(db).get(_model(entity), entity_id)
    return {"success": True, "data": _serialize(obj)}


@router.post("/{entity}", status_code=201)
async def create_entity(
    entity: str,
    fields: Dict[str, Any] = Body(..., description="Column values of the new row"),
    db: Session = Depends(get_db)
):
    """
    Create a row.

    Example (ports):
    ```
    {"code": "USLAX", "name": "Los Angeles", "country": "US", "timezone": "America/Los_Angeles"}
    ```
    """
    obj = LedgerService(db).create(_model(entity), **fields)
    return {"success": True, "data": _serialize(obj)}


@router.patch("/{entity}/{entity_id}")
async def update_entity(
    entity: str,
    entity_id: int,
    changes: Dict[str, Any] = Body(..., description="Fields to change"),
    db: Session = Depends(get_db)
):
    obj = LedgerService(db).update(_model(entity), entity_id, **changes)
    return {"success": True, "data": _serialize(obj)}


@router.delete("/{entity}/{entity_id}")
async def delete_entity(entity: str, entity_id: int, db: Session = Depends(get_db)):
    """Delete a row. Refused while other rows still reference it."""
    removed = LedgerService(db).delete(_model(entity), entity_id)
    return {"success": True, "data": {"removed": removed}}
