"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn afsp.main:app --reload

For production:
    gunicorn afsp.main:app -w 4 -k uvicorn.workers.UvicornWorker

Note that mock mode keeps data in process memory, so it only makes sense
with a single worker.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .api.dependencies import get_storage_client
from .api.errors import register_exception_handlers
from .api.routes import (
    admin,
    auth,
    chat,
    coach,
    contracts,
    exercises,
    health,
    journal,
    programs,
    users,
)
from .config.settings import get_settings
from .infrastructure.storage.client import StorageError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    On startup: report configuration problems and make sure the media
    buckets exist. A storage failure is logged and the app still starts;
    uploads will fail until the buckets are reachable.
    """
    # Startup
    settings = get_settings()

    logger.info(
        "AFSP API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "supabase": settings.supabase_mock_mode,
                "storage": settings.storage_mock_mode,
            }
        }
    )

    # Validate configuration
    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        # Bucket setup needs credentials; skip it rather than fail startup
    else:
        try:
            await get_storage_client(settings).ensure_buckets(settings.media_buckets)
        except StorageError as e:
            logger.error("Could not ensure media buckets", extra={"error": str(e)})

    yield

    # Shutdown
    logger.info("AFSP API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    This function is called once at startup (in production) or
    multiple times (in tests with different configurations).
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    # Create FastAPI instance
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Backend for a fitness coaching studio.

        ## Features

        - Accounts for athletes, coaches and admins
        - Program catalogue, enrollment and contract signing
        - Daily exercise schedules assigned from an exercise library
        - Private training journal with media attachments
        - Group and direct chat (polled)
        - Admin portal for programs, exercises, contracts and branding

        ## Authentication

        Protected endpoints require `Authorization: Bearer <accessToken>`,
        where the token comes from `POST /api/v1/auth/signin`.

        ## Errors

        Every error response is `{"error": "<message>"}`.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log one line per request with its status and duration."""
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "Request handled",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            }
        )
        return response

    register_exception_handlers(app)

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    prefix = settings.api_prefix.rstrip("/")

    app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["Auth"])

    # User routes carry their own paths (/user/profile, /logo)
    app.include_router(users.router, prefix=prefix, tags=["Users"])

    app.include_router(programs.router, prefix=f"{prefix}/programs", tags=["Programs"])
    app.include_router(exercises.router, prefix=f"{prefix}/exercises", tags=["Exercises"])
    app.include_router(journal.router, prefix=f"{prefix}/journal", tags=["Journal"])
    app.include_router(chat.router, prefix=f"{prefix}/chat", tags=["Chat"])
    app.include_router(contracts.router, prefix=f"{prefix}/contracts", tags=["Contracts"])
    app.include_router(admin.router, prefix=f"{prefix}/admin", tags=["Admin"])
    app.include_router(coach.router, prefix=f"{prefix}/coach", tags=["Coach"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at docs and health."""
        return {
            "message": "AFSP Coaching API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    # Get settings to determine log level
    settings = get_settings()

    uvicorn.run(
        "afsp.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
