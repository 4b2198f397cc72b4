from contextlib import asynccontextmanager
from pathlib import Path
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.api.v1.router import api_router
from app.core.exceptions import StorefrontError
from app.database import engine, init_db, async_session_factory
from app.services.notification_service import PushTokenRegistry
from app.services.partition_registry import PartitionRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create the static tables (orders, order counters, categories)
    - Attach the category partitions that already exist
    - Make sure the invoice and upload directories exist
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()
    await app.state.partition_registry.attach_existing()
    Path(settings.INVOICE_DIR).mkdir(parents=True, exist_ok=True)
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

    yield

    # Shutdown
    await engine.dispose()
    logger.info(f"Stopped {settings.APP_NAME}")


API_DESCRIPTION = """
## Storefront Backend

Orders, payment verification and dispatch for the online store, plus the
product catalog stored per category.

### Order Status Flow

`confirmed` -> `payment_verified` -> `booked`

### Error Responses

Errors are returned as `{"error", "type", "path", "method"}`.

| Code | Description |
|------|-------------|
| 400 | Bad Request - Missing fields, invalid order, transition, category or discount |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - Duplicate category |
| 503 | Service Unavailable - No order ID could be allocated, retry |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Process-wide shared state
app.state.partition_registry = PartitionRegistry(engine)
app.state.push_tokens = PushTokenRegistry()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)

# Uploaded images (payment screenshots, product photos)
app.mount(
    settings.UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=content)

    # Add CORS headers if origin is allowed
    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins_list or "*" in settings.cors_origins_list:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "*"

    return response


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError):
    """Domain errors carry their own HTTP status."""
    content = {
        "error": exc.message,
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    fields = getattr(exc, "fields", None)
    if fields:
        content["fields"] = fields
    return _error_response(request, exc.status_code, content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unexpected failures: log with request context, answer 500."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")

    error_detail = {
        "error": str(exc) if settings.DEBUG else "Internal server error",
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    if settings.DEBUG:
        error_detail["traceback"] = traceback.format_exc()

    return _error_response(request, 500, error_detail)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
