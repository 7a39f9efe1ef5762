"""
FastAPI Application Entry Point.

This is the main application file for the Freight Ledger Service.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from freight_ledger.app.core.config import settings
from freight_ledger.app.api.v1.router import router as api_v1_router
from freight_ledger.app.core.observability import ObservabilityMiddleware, configure_logging
from freight_ledger.app.db.session import engine, Base
from freight_ledger.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from freight_ledger.app.models.user import User
from freight_ledger.app.models.user_balance import UserBalance
from freight_ledger.app.models.order import Order
from freight_ledger.app.models.balance_transaction import BalanceTransaction
from freight_ledger.app.models.top_up_request import TopUpRequest
from freight_ledger.app.models.audit_log import AuditLog
from freight_ledger.app.models.dlq import DeadLetterQueue


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging.
    2. Creates database tables on startup.
    3. Disposes the engine on shutdown.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Dual-ledger balance and refund service for the freight customer portal",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Freight Ledger Service API",
        "docs": "/docs",
        "health": "/health",
    }
