"""
Serial Registry API

A FastAPI service that reads banknote serial numbers from photos and keeps a
deduplicated registry of them.

Main application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from serial_registry import __version__
from serial_registry.api import (
    routes_admin,
    routes_extract,
    routes_health,
    routes_serials,
    routes_transfer,
)
from serial_registry.core.config import get_settings
from serial_registry.core.exceptions import (
    ImportFormatError,
    RecognitionUnavailable,
    RegistryBusy,
    RegistryError,
    UnsupportedExportFormat,
)
from serial_registry.core.logging import get_logger, setup_logging
from serial_registry.core.middleware import RequestLoggingMiddleware
from serial_registry.services.recognition import TesseractRecognizer
from serial_registry.services.registry_store import create_registry_store

# Initialize application settings
settings = get_settings()

# Setup structured logging
setup_logging(settings.log_level, settings.log_format)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Startup selects and opens the registry backend once and builds the
    recognizer; shutdown closes the store.
    """
    store = create_registry_store(settings)
    await store.connect()
    app.state.store = store
    app.state.recognizer = TesseractRecognizer(
        language=settings.ocr_language,
        char_whitelist=settings.ocr_char_whitelist,
        timeout=settings.ocr_timeout_seconds,
        tesseract_cmd=settings.tesseract_cmd,
    )

    logger.info(
        "Serial Registry API starting",
        host=settings.api_host,
        port=settings.api_port,
        backend=store.backend_name,
        atomic_transactions=store.supports_atomic_transactions,
        upload_limit_mb=settings.max_upload_size_mb,
        cors_origins=settings.cors_origins,
    )

    yield

    logger.info("Serial Registry API shutting down")
    await store.close()


# Create FastAPI application
app = FastAPI(
    title="Serial Registry API",
    description="""
    ## Banknote Serial Registry

    Extracts serial numbers from photos of banknotes and records every
    distinct serial exactly once.

    ### Key Features:
    - **Extraction**: Batch image upload, OCR and serial pattern matching
    - **Deduplication**: A serial seen again is counted as a duplicate, never stored twice
    - **Manual Entry**: Paste lists of serials, edit or delete records
    - **Transfer**: Export as CSV, SQL dump or database file; import CSV

    ### Serial Format:
    - Two uppercase letters, eight digits, one uppercase letter (e.g. `LB42836549R`)
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Process-Time", "X-Request-ID", "Content-Disposition"],
)

# Compress responses of 1KB and up; export downloads and record pages benefit most
app.add_middleware(GZipMiddleware, minimum_size=1024)

# Custom middleware for request logging and timing
app.add_middleware(RequestLoggingMiddleware)


def _error_body(request: Request, exc: Exception, code: str) -> dict:
    return {
        "detail": getattr(exc, "message", str(exc)),
        "code": code,
        "request_id": getattr(request.state, "request_id", "unknown"),
    }


@app.exception_handler(RegistryBusy)
async def registry_busy_handler(request: Request, exc: RegistryBusy) -> JSONResponse:
    return JSONResponse(status_code=409, content=_error_body(request, exc, exc.code))


@app.exception_handler(UnsupportedExportFormat)
async def export_format_handler(request: Request, exc: UnsupportedExportFormat) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body(request, exc, exc.code))


@app.exception_handler(ImportFormatError)
async def import_format_handler(request: Request, exc: ImportFormatError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body(request, exc, exc.code))


@app.exception_handler(RecognitionUnavailable)
async def recognition_unavailable_handler(request: Request, exc: RecognitionUnavailable) -> JSONResponse:
    return JSONResponse(status_code=503, content=_error_body(request, exc, exc.code))


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    logger.error("Registry error", code=exc.code, error=exc.message)
    return JSONResponse(status_code=500, content=_error_body(request, exc, exc.code))


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors."""
    logger.error("Unhandled error", error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": getattr(request.state, "request_id", "unknown"),
        }
    )


# Include API routers
app.include_router(
    routes_health.router,
    prefix="/healthz",
    tags=["Health Check"]
)

ROUTERS = (
    (routes_extract.router, "Extraction"),
    (routes_serials.router, "Registry"),
    (routes_transfer.router, "Import / Export"),
    (routes_admin.router, "Administration"),
)

for router, tag in ROUTERS:
    app.include_router(router, tags=[tag])
    # Same routes behind the /api prefix used by the web client's proxy
    app.include_router(router, prefix="/api", tags=[tag], include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with basic API information."""
    return {
        "message": "Serial Registry API",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    # Run the application directly (for development)
    uvicorn.run(
        "serial_registry.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
