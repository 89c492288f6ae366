"""
ShipHub Requests Service
Shipping requests, company cost offers and delivery status workflow
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pathlib import Path
import subprocess

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from app.api.routes import router as requests_router, admin_router
from app.api.company_routes import router as company_router
from app.api.fleet_routes import admin_router as fleet_router, driver_router
from app.core_settings import get_settings
from app.domain.exceptions import ShipHubError
from app.infrastructure.db import engine, init_models

settings = get_settings()

SERVICE_NAME = "shiphub-requests"
SERVICE_VERSION = settings.SERVICE_VERSION
SERVICE_DESCRIPTION = "Shipping request, cost offer and delivery workflow service"
SERVICE_ROOT = Path(__file__).resolve().parent.parent

setup_logging(service_name=SERVICE_NAME, level=settings.LOG_LEVEL)

logger = get_logger(__name__)


def run_migrations() -> bool:
    """Apply alembic revisions; ``create_all`` covers anything they miss."""
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=SERVICE_ROOT,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.error(f"Could not run alembic: {e}")
        return False
    if result.returncode != 0:
        logger.warning("Alembic upgrade failed", extra={"extra_fields": {"stderr": result.stderr[-2000:]}})
        return False
    logger.info("Database migrations applied")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {SERVICE_NAME} {SERVICE_VERSION} ({settings.ENVIRONMENT})")
    if settings.RUN_MIGRATIONS:
        run_migrations()
    init_models()
    yield
    logger.info(f"Stopping {SERVICE_NAME}")
    engine.dispose()


app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ShipHubError)
async def shiphub_error_handler(request: Request, exc: ShipHubError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Body, query and path validation failures are reported as 400."""
    errors = exc.errors()
    if not errors:
        return JSONResponse(status_code=400, content={"error": "Invalid request"})
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


health = ServiceHealth(
    SERVICE_NAME,
    SERVICE_VERSION,
    engine=engine,
    required_tables=("shipping_requests", "cost_offers", "activity_history", "companies", "assignments", "audit_logs"),
)
app.include_router(health.create_health_router())
app.include_router(requests_router)
app.include_router(admin_router)
app.include_router(company_router)
app.include_router(fleet_router)
app.include_router(driver_router)


@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "status": "running",
        "docs": app.docs_url,
    }


@app.get("/info")
async def info():
    """Service description and the main entry points."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "health": ["/health", "/health/live", "/health/ready", "/metrics"],
            "docs": app.docs_url,
            "requests": "/requests/",
            "company": "/company/requests",
            "admin": "/admin/orders",
            "driver": "/driver/orders",
        },
    }
