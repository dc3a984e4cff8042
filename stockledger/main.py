"""
Main FastAPI application.
- Preflight database check on startup, tables created if missing
- Ledger immutability guard registered before any session is used
- Domain errors rendered as {"error": {"kind", "message"}}
"""
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
import logging

from stockledger.config import settings
from stockledger.database import Base, engine, get_db, check_connection
from stockledger.errors import InventoryError
from stockledger.immutability import register_ledger_guard
from stockledger import models  # noqa: F401  registers the tables on Base
from stockledger.routers import (
    auth_router, products_router, stock_router, ledger_router, reports_router, notifications_router,
)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

register_ledger_guard()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")

    success, message = check_connection()
    if not success:
        # Don't crash, but log prominently
        logger.error(f"Preflight test failed: {message}")
    else:
        logger.info(f"Preflight test passed: {message}")

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables verified")
    except SQLAlchemyError as e:
        logger.warning(f"Database table creation: {e}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")

app = FastAPI(
    title=settings.APP_NAME,
    description="Inventory stock ledger with an append-only audit trail and analytics reports",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

app.include_router(auth_router, prefix="/api")
app.include_router(products_router, prefix="/api")
app.include_router(stock_router, prefix="/api")
app.include_router(ledger_router, prefix="/api")
app.include_router(reports_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")

@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Fails gracefully if the database is unavailable"""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = "error"
        logger.warning(f"Health check database error: {e}")

    return {
        "status": "healthy",
        "service": "stockledger",
        "database": db_status,
        "version": settings.APP_VERSION,
    }

@app.get("/")
async def root():
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "Append-only stock ledger - atomic stock changes - inventory reports",
        "endpoints": {
            "docs": "/api/docs",
            "health": "/health",
            "auth": "/api/auth/login",
            "reports": "/api/reports",
        }
    }
