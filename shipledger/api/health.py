"""
Health check and status endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shipledger import __version__
from shipledger.config import get_settings
from shipledger.models.base import get_db
from shipledger.models.billing import Invoice
from shipledger.models.shipment import Shipment
from shipledger.utils.logger import log

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness probe"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status(db: Session = Depends(get_db)):
    """Database connectivity plus shipment and invoice counts per status"""
    try:
        db.execute(text("SELECT 1"))
        shipments = dict(db.query(Shipment.status, func.count(Shipment.id)).group_by(Shipment.status).all())
        invoices = dict(db.query(Invoice.status, func.count(Invoice.id)).group_by(Invoice.status).all())
    except SQLAlchemyError as e:
        log.error(f"Status check failed: {e}")
        return {
            "app_name": settings.app_name,
            "version": __version__,
            "database": "unavailable",
            "error": str(e),
        }

    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "database": "connected",
        "shipments": {status.value: count for status, count in shipments.items()},
        "invoices": {status.value: count for status, count in invoices.items()},
        "revenue_statuses": settings.revenue_status_list,
        "timestamp": datetime.utcnow().isoformat()
    }
