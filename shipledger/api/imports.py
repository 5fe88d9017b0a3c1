"""
Seed data upload endpoints
"""
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from shipledger.exceptions import NotFound
from shipledger.models.base import get_db
from shipledger.services.import_service import ImportService

router = APIRouter(prefix="/imports", tags=["imports"])

IMPORTERS = {
    "ports": ImportService.import_ports,
    "routes": ImportService.import_routes,
    "shipments": ImportService.import_shipments,
}


@router.post("/{kind}")
async def upload_csv(
    kind: str,
    file: UploadFile = File(..., description="CSV file"),
    db: Session = Depends(get_db)
):
    """
    Load ports, routes or shipments from a CSV file.

    Expected CSV format (shipments):
    ```
    booking_no,customer,origin,destination,planned_arrival_date,status,delivered_at
    BK-1001,Acme Corp,CNSHA,USLAX,2024-03-10,DELIVERED,2024-03-09T14:00:00
    ```
    Load ports first, then routes, then shipments.
    """
    importer = IMPORTERS.get(kind)
    if importer is None:
        raise NotFound("Import type", kind)

    content = await file.read()
    csv_text = content.decode('utf-8-sig')  # Handle BOM from Excel exports

    result = importer(ImportService(db), csv_text)
    return {
        "success": result.get("success", False),
        "data": result,
    }
