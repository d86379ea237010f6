from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import os
import logging

from ..database.connection import DatabaseManager, get_db
from ..exceptions import (
    DomainConflictError, ForbiddenError, NotFoundError, ValidationFailedError
)
from .routes import time_entries

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup and log shutdown."""
    logger.info("Starting up Multitenant Time Tracker API...")
    try:
        DatabaseManager.init_db()
        logger.info("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")
        raise
    yield
    logger.info("Shutting down Multitenant Time Tracker API...")


# Initialize FastAPI app with metadata
app = FastAPI(
    title="Multitenant Time Tracker API",
    description="Time entry tracking, filtering and reporting for multi-tenant organizations.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Time Entries",
            "description": "Time entry CRUD, batch updates and aggregated reports"
        },
        {
            "name": "Health",
            "description": "Service health checks"
        }
    ]
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ForbiddenError)
async def forbidden_exception_handler(request: Request, exc: ForbiddenError):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": exc.message, "kind": exc.kind}
    )


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": exc.message, "kind": exc.kind}
    )


@app.exception_handler(ValidationFailedError)
async def validation_exception_handler(request: Request, exc: ValidationFailedError):
    """Report domain validation failures in FastAPI's 422 layout."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": [
                {"loc": [exc.source, field], "msg": message, "type": "value_error"}
                for field, message in exc.errors.items()
            ],
            "kind": exc.kind
        }
    )


@app.exception_handler(DomainConflictError)
async def domain_conflict_exception_handler(request: Request, exc: DomainConflictError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": True, "kind": exc.kind, "key": exc.key, "message": exc.message}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# Health check endpoint
@app.get("/", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns basic API status and version information.
    """
    return {
        "message": "Multitenant Time Tracker API is healthy",
        "version": "1.0.0",
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
def detailed_health_check(db: Session = Depends(get_db)):
    """
    Detailed health check endpoint.

    Returns health status including database connectivity.
    """
    try:
        db.execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy - database connection failed"
        )

    return {
        "status": "healthy",
        "version": "1.0.0",
        "database": "connected"
    }


# Include routers
app.include_router(time_entries.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "timetracker.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
