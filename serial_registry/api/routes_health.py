"""
Health check endpoints.

Provides basic liveness and a detailed check that exercises the active
registry backend.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from serial_registry import __version__
from serial_registry.api.deps import get_store
from serial_registry.core.config import get_settings
from serial_registry.services.registry_store import RegistryStore

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("", summary="Basic Health Check")
@router.get("/", summary="Basic Health Check", include_in_schema=False)
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        dict: Basic service status and metadata
    """
    return {
        "status": "healthy",
        "service": "serial-registry",
        "version": __version__,
        "timestamp": _timestamp(),
        "environment": get_settings().environment,
    }


@router.get("/detailed", summary="Detailed Health Check")
async def detailed_health_check(store: RegistryStore = Depends(get_store)) -> Dict[str, Any]:
    """
    Detailed health check including registry connectivity.

    Raises:
        HTTPException: 503 when the registry cannot be reached
    """
    health_data = {
        "status": "healthy",
        "service": "serial-registry",
        "version": __version__,
        "timestamp": _timestamp(),
        "environment": get_settings().environment,
        "checks": {},
    }

    if store.is_wiping:
        health_data["checks"]["registry"] = {
            "status": "degraded",
            "backend": store.backend_name,
            "message": "Registry wipe in progress",
        }
        health_data["status"] = "degraded"
        return health_data

    try:
        if not await store.ping():
            raise RuntimeError("Invalid health check response")
        health_data["checks"]["registry"] = {
            "status": "healthy",
            "backend": store.backend_name,
            "atomic_transactions": store.supports_atomic_transactions,
            "message": "Registry connection successful",
        }
    except Exception as e:
        health_data["checks"]["registry"] = {
            "status": "unhealthy",
            "backend": store.backend_name,
            "message": f"Registry connection failed: {str(e)}",
        }
        health_data["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=health_data,
        )

    return health_data
