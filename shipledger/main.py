"""
Shipping Ledger
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from shipledger.config import get_settings
from shipledger.exceptions import ErrorType, LedgerError
from shipledger.utils.logger import log
from shipledger import __version__

# Import routers
from shipledger.api import health, master_data, shipments, billing, reports, imports

settings = get_settings()

# HTTP status per ledger error type
ERROR_STATUS_CODES = {
    ErrorType.NOT_FOUND: 404,
    ErrorType.CONSTRAINT_VIOLATION: 422,
    ErrorType.FOREIGN_KEY_VIOLATION: 422,
    ErrorType.INVALID_TRANSITION: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from shipledger.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    yield

    # Shutdown
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Shipping Ledger

    Relational ledger for a shipping business:
    - Master data: customers, ports, vessels, routes, containers
    - Shipments with container assignments and tracking events
    - Invoices, line items and payments
    - Reports: on-time delivery rate, revenue by customer
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Turn ledger errors into JSON error responses."""
    status_code = ERROR_STATUS_CODES.get(exc.error_type, 400)
    log.warning(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": exc.to_dict()},
    )


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(master_data.router)
app.include_router(shipments.router)
app.include_router(billing.router)
app.include_router(reports.router)
app.include_router(imports.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "status": "/status",
        "endpoints": {
            "master_data": "GET|POST /master/{customers|ports|vessels|routes|containers}",
            "book_shipment": "POST /shipments",
            "record_tracking_event": "POST /shipments/{id}/events",
            "shipment_timeline": "GET /shipments/{id}/timeline",
            "issue_invoice": "POST /invoices",
            "record_payment": "POST /invoices/{id}/payments",
            "on_time_report": "GET /reports/on-time",
            "revenue_report": "GET /reports/revenue",
            "seed_import": "POST /imports/{ports|routes|shipments}",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "shipledger.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
