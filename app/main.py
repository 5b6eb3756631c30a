# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Client Scope API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import (
    ClientScopeException,
    client_scope_exception_handler,
    validation_exception_handler,
)
from app.routers import entities, health, scope

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs startup configuration; there are no background tasks and no
    process-wide caches to warm or tear down.
    """
    logger.info(f"Starting Client Scope API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(
        f"Federation: {settings.FEDERATION_MAX_WORKERS} workers, "
        f"{settings.FEDERATION_TIMEOUT_SECONDS}s deadline"
    )

    yield

    logger.info("Shutting down Client Scope API")


# Create FastAPI application
app = FastAPI(
    title="Client Scope API",
    description="""
## Client-Scoped Reads for the Agency Portal

Every calendar entry, artwork, campaign and analytics upload belongs to an
end-client. Its client reference is either a client id or, for legacy rows,
a company name. This API resolves what each user may see and reads only
those rows.

### How It Works

1. **Normalize** the user's assigned clients (list, comma string or legacy id)
2. **Resolve** them against the client registry, including duplicate
   client records that share a company name
3. **Apply the role policy** (IT_ADMIN sees everything; other roles see
   their resolved clients only)
4. **Read** each entity table once per reference representation and merge

### Roles

| Role | Scope |
|------|-------|
| **IT_ADMIN** | All clients |
| **AGENCY_ADMIN** | Assigned clients |
| **DESIGNER** | Assigned clients |
| **CLIENT** | Own client(s); nothing when unassigned |
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Scope",
            "description": "Inspect the caller's resolved client scope",
        },
        {
            "name": "Entities",
            "description": "Client-scoped reads of portal records",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(ClientScopeException)
async def handle_client_scope_exception(request: Request, exc: ClientScopeException):
    """Handle custom Client Scope exceptions."""
    if exc.retryable:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return await client_scope_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Scope inspection endpoints
app.include_router(
    scope.router,
    prefix="/api/v1/scope",
    tags=["Scope"]
)

# Scoped entity reads
app.include_router(
    entities.router,
    prefix="/api/v1/entities",
    tags=["Entities"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Client Scope API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
