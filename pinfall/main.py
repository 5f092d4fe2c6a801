"""
Pinfall Tournament API - Main Application
"""
import logging
import sys
import traceback
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import uvicorn

from .core.config import settings
from .core.exceptions import PinfallError
from .core.rate_limit import limiter
from .database import init_db
from .api.v1 import api_router
from .services.scheduler_service import scheduler_service

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Pinfall Tournament API...")

    try:
        init_db()
        logger.info("Database initialized successfully")

        # Expired holds are ignored by queries; the sweep only reclaims rows
        scheduler_service.start()
        logger.info(f"Reservation sweep every {settings.RESERVATION_SWEEP_MINUTES} minute(s)")

        logger.info(f"API running at http://{settings.API_HOST}:{settings.API_PORT} (debug={settings.DEBUG})")

    except Exception as e:
        logger.error(f"Failed to initialize backend: {e}")
        raise

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down Pinfall Tournament API...")

    try:
        scheduler_service.shutdown()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Bowling tournament registration, squad capacity, scoring and advancement",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Rate limiter shared with the routers
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PinfallError)
async def pinfall_exception_handler(request: Request, exc: PinfallError):
    """Domain errors carry their own status code and a user-facing reason."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, **exc.extra}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 naming the first field that failed."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = str(first.get("msg", "Invalid request")).replace("Value error, ", "")
    return JSONResponse(
        status_code=400,
        content={
            "detail": message,
            "field": field or None,
        }
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unexpected errors."""
    # Generate a unique error ID for tracking
    error_id = str(uuid.uuid4())[:8]

    # Always log the full error on the server
    logger.error(
        f"[ERROR_ID: {error_id}] Unhandled exception on {request.method} {request.url.path}",
        exc_info=True
    )

    if settings.DEBUG:
        # Development: return detailed error for debugging
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "error_id": error_id,
                "type": type(exc).__name__,
                "path": str(request.url.path),
                "traceback": traceback.format_exc()
            }
        )
    else:
        # Production: return generic error, hide internal details
        return JSONResponse(
            status_code=500,
            content={
                "detail": "An internal server error occurred. Please try again later.",
                "error_id": error_id
            }
        )


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "environment": settings.ENVIRONMENT,
        "docs_url": "/docs" if settings.DEBUG else "disabled",
        "features": [
            "Tournaments with squads and multi-stage formats",
            "Squad capacity with 10-minute spot holds",
            "Bowler registration and profiles",
            "Handicap, match-play bonus and carryover scoring",
            "Leaderboards and stage advancement",
            "Registration confirmation email"
        ]
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    from pinfall.utils.time_utils import to_utc_isoformat, utc_now

    scheduler_running = scheduler_service.scheduler.running if scheduler_service.scheduler else False
    scheduled_jobs = len(scheduler_service.get_scheduled_jobs()) if scheduler_service.scheduler else 0

    return {
        "status": "healthy",
        "timestamp": to_utc_isoformat(utc_now()),
        "service": "pinfall-api",
        "version": "1.0.0",
        "services": {
            "scheduler": {
                "status": "running" if scheduler_running else "stopped",
                "scheduled_jobs": scheduled_jobs
            },
            "email": {
                "status": "configured" if settings.email_enabled else "disabled"
            }
        }
    }


# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


if __name__ == "__main__":
    # Run the application
    uvicorn.run(
        "pinfall.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
