"""
Registry routes

Read views over the registry plus manual add, edit and delete.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from serial_registry.api.deps import get_registry_service
from serial_registry.schemas.records import (
    BatchAddRequest,
    BatchAddResponse,
    OperationResponse,
    RecordsPage,
    RecordUpdateRequest,
    StatsResponse,
)
from serial_registry.services.registry import DEFAULT_PAGE_SIZE, RegistryService, UpdateOutcome

router = APIRouter()


@router.get("/serials", response_model=List[str], summary="List all serial numbers")
async def list_serials(service: RegistryService = Depends(get_registry_service)) -> List[str]:
    """All serial numbers in ascending order."""
    return await service.list_serials()


@router.get("/records", response_model=RecordsPage, summary="Paged registry records")
async def get_records(
    page: int = Query(1, description="Page number, starting at 1"),
    limit: int = Query(DEFAULT_PAGE_SIZE, description="Records per page"),
    q: Optional[str] = Query(None, description="Serial number substring filter"),
    service: RegistryService = Depends(get_registry_service),
) -> RecordsPage:
    """
    Newest records first.

    Out-of-range ``page`` / ``limit`` values fall back to the defaults.
    """
    return RecordsPage.model_validate(await service.get_records(page=page, limit=limit, q=q))


@router.get("/stats", response_model=StatsResponse, summary="Registry counts")
async def get_stats(service: RegistryService = Depends(get_registry_service)) -> StatsResponse:
    return StatsResponse.model_validate(await service.stats())


@router.post("/serials/batch", response_model=BatchAddResponse, summary="Add serials manually")
async def add_serials(
    payload: BatchAddRequest = Body(...),
    service: RegistryService = Depends(get_registry_service),
) -> BatchAddResponse:
    """
    Add a pasted list of serials.

    Existing serials are reported under ``duplicates`` and left untouched.
    """
    result = await service.add_serials(payload.serials)
    return BatchAddResponse(added=result.added, duplicates=result.duplicates, invalid=result.invalid)


@router.put(
    "/serials/{record_id}",
    response_model=OperationResponse,
    summary="Edit a record",
    responses={
        404: {"description": "Record not found"},
        409: {"description": "Another record already has this serial number"},
    },
)
async def update_record(
    record_id: int = Path(..., description="Record ID"),
    payload: RecordUpdateRequest = Body(...),
    service: RegistryService = Depends(get_registry_service),
) -> OperationResponse:
    outcome = await service.update_record(record_id, payload.serial_number, payload.status.value)

    if outcome is UpdateOutcome.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found.")
    if outcome is UpdateOutcome.CONFLICT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Serial number already exists.",
        )
    return OperationResponse(success=True, message="Record updated.")


@router.delete(
    "/serials/{serial}",
    response_model=OperationResponse,
    summary="Delete a serial number",
    responses={404: {"description": "Serial not found"}},
)
async def delete_serial(
    serial: str = Path(..., description="Serial number to delete"),
    service: RegistryService = Depends(get_registry_service),
) -> OperationResponse:
    if not await service.delete_serial(serial):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Serial not found.")
    return OperationResponse(success=True, message=f"Serial {serial} deleted.")
