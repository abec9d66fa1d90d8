"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from lablineage.config import get_settings
from lablineage.db.database import init_db
from lablineage.errors import LabLineageError, ResourceExhaustedError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events.

    Args:
        app: FastAPI application instance.
    """
    init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant laboratory resource lineage and cross-organization handoff",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


async def lablineage_error_handler(request: Request, exc: LabLineageError) -> JSONResponse:
    """Map taxonomy errors to their HTTP status."""
    headers = {"Retry-After": "1"} if isinstance(exc, ResourceExhaustedError) else None
    return _error(exc.status_code, exc.message, headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Authentication failures and unknown routes, in the same envelope."""
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as 400 with the first problem."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return _error(status.HTTP_400_BAD_REQUEST, message)


async def pool_timeout_handler(request: Request, exc: PoolTimeoutError) -> JSONResponse:
    """Database pool exhausted; the client may retry."""
    logger.warning(f"Connection pool exhausted on {request.method} {request.url.path}")
    return await lablineage_error_handler(
        request, ResourceExhaustedError("Service temporarily unavailable, please retry")
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Unexpected database failure."""
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else. Details go to the log, never to the client."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


app.add_exception_handler(LabLineageError, lablineage_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(PoolTimeoutError, pool_timeout_handler)
app.add_exception_handler(SQLAlchemyError, database_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)


# Import and include routers
from lablineage.access.router import router as access_router
from lablineage.analyses.router import router as analyses_router
from lablineage.analyses.router import types_router as analysis_types_router
from lablineage.audit.router import router as audit_router
from lablineage.batches.router import router as batches_router
from lablineage.lineage.router import router as lineage_router
from lablineage.organizations.router import router as organizations_router
from lablineage.projects.router import router as projects_router
from lablineage.samples.router import router as samples_router
from lablineage.supply_chain.router import router as supply_chain_router
from lablineage.trials.router import router as trials_router
from lablineage.workspaces.router import router as workspaces_router

# API routes
app.include_router(access_router, prefix="/api/access", tags=["access"])
app.include_router(organizations_router, prefix="/api/organizations", tags=["organizations"])
app.include_router(projects_router, prefix="/api/projects", tags=["projects"])
app.include_router(trials_router, prefix="/api/projects/{project_id}/trials", tags=["trials"])
app.include_router(samples_router, prefix="/api/samples", tags=["samples"])
app.include_router(lineage_router, prefix="/api/derived-samples", tags=["lineage"])
app.include_router(batches_router, prefix="/api/batches", tags=["batches"])
app.include_router(analyses_router, prefix="/api/analyses", tags=["analyses"])
app.include_router(analysis_types_router, prefix="/api/analysis-types", tags=["analyses"])
app.include_router(supply_chain_router, prefix="/api/supply-chain", tags=["supply-chain"])
app.include_router(workspaces_router, prefix="/api/workspaces", tags=["workspaces"])
app.include_router(audit_router, prefix="/api/audit", tags=["audit"])


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        dict: Health status.
    """
    return {"status": "healthy", "app": settings.app_name}
