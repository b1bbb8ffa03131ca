"""
Main FastAPI application entry point
"""

import logging

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from nayscake.api.router import api_router
from nayscake.core.config import ConfigurationError, settings
from nayscake.core.logging import setup_logging
from nayscake.core.telemetry import initialize_telemetry
from nayscake.core.timing import TimingMiddleware
from nayscake.db.database import get_db
from nayscake.services.user_migration import ValidationError

logger = logging.getLogger(__name__)

# Configure logging first
setup_logging()

# Create FastAPI app instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    debug=settings.DEBUG,
)

initialize_telemetry(
    enabled=settings.OTEL_ENABLED,
    metrics_enabled=settings.OTEL_METRICS_ENABLED,
    service_name=settings.OTEL_SERVICE_NAME,
    environment=settings.ENVIRONMENT,
    otlp_endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
    otlp_headers=settings.OTEL_EXPORTER_OTLP_HEADERS,
)

# Add timing middleware first to capture total request time
app.add_middleware(TimingMiddleware)

# Set up CORS
if settings.BACKEND_CORS_ORIGINS:
    cors_origins = []
    for origin in settings.BACKEND_CORS_ORIGINS:
        origin_str = str(origin).strip()
        if origin_str.endswith("/"):
            origin_str = origin_str.rstrip("/")
        cors_origins.append(origin_str)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": str(exc)},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
):
    logger.info("Rejected malformed request body", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": str(ValidationError())},
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(
        "Configuration error",
        extra={"setting": exc.setting, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": str(exc)},
    )


# Include API router
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint with database connectivity verification."""
    try:
        from nayscake.__version__ import __build_time__, __version__

        version_info = {"version": __version__, "build_time": __build_time__}
    except ImportError:
        version_info = {"version": "unknown", "build_time": "unknown"}

    db_status = "unknown"
    db_error = None
    try:
        db.execute(text("SELECT 1")).scalar()
        db_status = "connected"
    except Exception as e:
        db_status = "error"
        db_error = str(e)
        logger.error(f"Database health check failed: {e}")

    if db_status != "connected":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "unhealthy",
                "environment": settings.ENVIRONMENT,
                "version": version_info["version"],
                "build_time": version_info["build_time"],
                "database": db_status,
                "error": db_error,
            },
        )

    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": version_info["version"],
        "build_time": version_info["build_time"],
        "database": db_status,
    }


# Instrument FastAPI app AFTER all routes are added
if settings.OTEL_ENABLED:
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    FastAPIInstrumentor.instrument_app(app, excluded_urls="/health")
    logger.info("FastAPI app instrumented with OpenTelemetry (after routes added)")


if __name__ == "__main__":
    import os

    import uvicorn

    host = os.getenv("UVICORN_HOST", "127.0.0.1")
    port = int(os.getenv("UVICORN_PORT", "8000"))
    uvicorn.run(app, host=host, port=port)
