"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from directory_backend.core.config import settings
from directory_backend.core.middleware import setup_middleware
from directory_backend.core.exceptions import DirectoryError, RateLimited, RoleNotFound

from directory_backend.api.admin import router as admin_router
from directory_backend.api.permission_audit import router as permission_audit_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("directory_backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("🚀 Starting %s", settings.APP_NAME)
    if settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Admin rate limits shared through Redis")
    if not settings.ADMIN_AUDIT_TOKEN:
        logger.warning("⚠️  ADMIN_AUDIT_TOKEN not set; machine permission audit disabled")

    yield

    logger.info("🔻 Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="Startup Directory Admin API",
    description="Admin back-office: RBAC, moderation and permission audits",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(DirectoryError)
async def directory_exception_handler(request: Request, exc: DirectoryError):
    headers = {}
    message = exc.message
    if isinstance(exc, RateLimited) and exc.retry_after is not None:
        headers["Retry-After"] = str(max(1, int(exc.retry_after + 0.999)))
    if isinstance(exc, RoleNotFound):
        logger.error("Role configuration error: %s", exc.message)
        message = "Role is not configured"
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": message},
        headers=headers,
    )

# Register routers
app.include_router(admin_router, prefix="/api")
app.include_router(permission_audit_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
