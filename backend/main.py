"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tavlo.api.routes import (badges, domains, health, items, library,
                              metrics, quick_add, user, webhooks)
from tavlo.core.config import get_settings
from tavlo.core.errors import (AuthenticationError, ContentValidationError,
                               InvalidInputError, InvalidURLError, NotFoundError,
                               PermissionDeniedError, RateLimitExceededError,
                               TavloError)
from tavlo.core.llm_client import close_llm_client
from tavlo.core.logging_config import LoggingConfig
from tavlo.core.middleware import LoggingContextMiddleware
from tavlo.core.middleware_metrics import MetricsMiddleware

# Configure logging first
LoggingConfig.configure()

# Get logger for this module
logger = LoggingConfig.get_logger(__name__)

VERSION = "0.1.0"

ERROR_STATUS = {
    InvalidURLError: status.HTTP_400_BAD_REQUEST,
    ContentValidationError: status.HTTP_400_BAD_REQUEST,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    RateLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    # Startup
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode...")
    if not settings.llm_api_key:
        logger.warning("OPENAI_API_KEY not set; items will be saved with fallback summaries")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_llm_client()


# Create FastAPI app
_settings = get_settings()
app = FastAPI(
    title=_settings.app_name,
    description="Save links and newsletters, get AI summaries, earn XP for learning",
    version=VERSION,
    lifespan=lifespan,
)

# Add logging context middleware (before CORS to capture all requests)
app.add_middleware(LoggingContextMiddleware)
# Add metrics middleware
app.add_middleware(MetricsMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TavloError)
async def tavlo_exception_handler(request: Request, exc: TavloError):
    """Application errors that escaped a route map to their HTTP status"""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {
            "Retry-After": str(exc.retry_after),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.reset),
        }

    logger.warning(
        f"{type(exc).__name__}: {exc}",
        extra={"path": request.url.path, "status_code": status_code},
    )
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": str(exc), "type": type(exc).__name__},
        headers=headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to log all unhandled errors"""
    # Don't handle HTTPException - let FastAPI handle it
    if isinstance(exc, FastAPIHTTPException):
        raise exc

    error_msg = str(exc)
    logger.error(
        "Unhandled exception",
        exc_info=True,
        extra={
            "error": error_msg,
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "type": type(exc).__name__
        }
    )


# Include routers
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(items.router)
app.include_router(quick_add.router)
app.include_router(library.router)
app.include_router(domains.router)
app.include_router(user.router)
app.include_router(badges.router)
app.include_router(webhooks.router)


@app.get("/api")
async def root():
    """Root API endpoint"""
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": VERSION,
        "status": "running",
        "environment": settings.app_env,
    }


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.app_env == "development",
    )
