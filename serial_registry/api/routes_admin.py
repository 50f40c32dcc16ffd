"""
Administrative routes

Full registry wipe. The request must carry the confirmation header with its
exact expected value; the web client only sends it after a second, typed
confirmation from the operator.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from serial_registry.api.deps import get_store
from serial_registry.core.config import Settings, get_settings
from serial_registry.core.logging import get_logger
from serial_registry.schemas.records import OperationResponse
from serial_registry.services.registry_store import RegistryStore

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/reset",
    response_model=OperationResponse,
    summary="Wipe the registry",
    responses={
        400: {"description": "Confirmation header missing or wrong"},
        409: {"description": "A wipe is already in progress"},
        500: {"description": "Wipe failed; the store handle was restored"},
    },
)
async def reset_registry(
    request: Request,
    store: RegistryStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> OperationResponse:
    confirmation = request.headers.get(settings.reset_confirm_header)
    if confirmation != settings.reset_confirm_value:
        logger.warning("Registry wipe rejected without confirmation")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing confirmation header.")

    store.ensure_available()
    logger.warning("Wiping registry", backend=store.backend_name)

    try:
        await store.wipe()
    except Exception as exc:
        logger.error("Registry wipe failed", error=str(exc), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database reset failed: {exc}",
        )

    return OperationResponse(success=True, message="Database has been wiped successfully.")
