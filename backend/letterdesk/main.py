from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from letterdesk import __version__
from letterdesk.core.config import settings
from letterdesk.core.database import close_db, init_db
from letterdesk.core.exceptions import LetterDeskError
from letterdesk.core.logging_config import logger
from letterdesk.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from letterdesk.core.rate_limiter import limiter, rate_limit_exceeded_handler
from letterdesk.config.letter_types import get_letter_type_registry
from letterdesk.api.v1.router import api_router
from slowapi.errors import RateLimitExceeded


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.SECRET_KEY or settings.SECRET_KEY == "CHANGE_ME":
        errors.append("SECRET_KEY is not set or using default value")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if settings.LETTER_NUMBER_MAX_RETRIES < 1:
        errors.append("LETTER_NUMBER_MAX_RETRIES must be at least 1")

    if settings.LETTER_NUMBER_TIMEZONE:
        try:
            ZoneInfo(settings.LETTER_NUMBER_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"LETTER_NUMBER_TIMEZONE '{settings.LETTER_NUMBER_TIMEZONE}' is not a known time zone")
    else:
        warnings.append("LETTER_NUMBER_TIMEZONE not set - letter numbers follow server local time")

    if not settings.RATE_LIMIT_ENABLED:
        warnings.append("RATE_LIMIT_ENABLED is false - rate limiting disabled")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Invalid critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    # Step 1: Validate critical configuration (fail fast!)
    await validate_critical_config()

    # Step 2: Load the letter type catalog (fails on a missing or malformed file)
    registry = get_letter_type_registry()
    logger.info(f"[Startup] {len(registry)} letter types available")

    # Step 3: Ensure database tables exist
    await init_db()
    logger.info("[Startup] Database tables ready")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Letter requests, approvals and letter numbering for university administration",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=1024 * 1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(LetterDeskError)
async def letterdesk_exception_handler(request: Request, exc: LetterDeskError):
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "code": exc.code,
            "details": exc.details
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": __version__,
        "environment": settings.ENVIRONMENT
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Include API router
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "letterdesk.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
