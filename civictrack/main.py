"""
CivicTrack - FastAPI Application Entry Point

Citizens report local civic problems and browse them on a map;
administrators moderate them.

DESIGN PRINCIPLES:
- Status only moves forward through the lifecycle rules
- Community spam reports hide issues automatically; only admins restore them
- One upvote and one spam report per user per issue, enforced by the store
- Every mutation leaves an activity record
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded

from civictrack.config.firebase import initialize_firestore
from civictrack.core.errors import CivicTrackError, RateLimited
from civictrack.core.logging_config import configure_logging
from civictrack.core.rate_limiting import limiter
from civictrack.core.settings import settings
from civictrack.routes import admin, health, issues

configure_logging()
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Issue lifecycle and community moderation API for civic problem reports",
    debug=settings.DEBUG,
)
app.state.limiter = limiter


def _error_response(error: CivicTrackError) -> JSONResponse:
    headers = None
    if isinstance(error, RateLimited) and error.retry_after:
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.to_dict()},
        headers=headers,
    )


@app.exception_handler(CivicTrackError)
async def civictrack_exception_handler(request: Request, exc: CivicTrackError):
    """Engine errors carry their own kind and HTTP status."""
    level = logging.WARNING if exc.status_code >= 500 else logging.INFO
    logger.log(level, f"{request.method} {request.url.path} -> {exc.kind}: {exc.message}")
    return _error_response(exc)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded: {request.method} {request.url.path} ({exc.detail})")
    return _error_response(RateLimited(f"Rate limit exceeded: {exc.detail}"))


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests share the engine's ValidationError shape."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    logger.info(f"Validation error on {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {
                "kind": "ValidationError",
                "message": first.get("msg", "Invalid request"),
                "field": field or None,
                "errors": [
                    {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
                    for error in errors
                ],
            },
        },
    )


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log with traceback; never leak internal error text to clients."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": {"kind": "InternalError", "message": "Internal server error"}},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: Firestore connection
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    try:
        initialize_firestore()
    except RuntimeError as e:
        # The app still starts; /health/db reports the problem
        logger.error(f"Firestore initialization failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(issues.router)
app.include_router(admin.router)

# Locally stored images are served by the API itself
if settings.MEDIA_BACKEND.lower() == "local" or settings.USE_MOCK_DB:
    app.mount(settings.MEDIA_BASE_URL, StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False), name="media")


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "issues": "/issues",
    }
