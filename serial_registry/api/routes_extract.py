"""
Image extraction route

Accepts a batch of banknote photos, reads their serial numbers and records
them in the registry.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from serial_registry.api.deps import get_coordinator
from serial_registry.core.config import Settings, get_settings
from serial_registry.core.logging import get_logger
from serial_registry.schemas.extract import ExtractResponse
from serial_registry.services.ingestion import IngestionCoordinator, UploadedImage

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/extract",
    response_model=ExtractResponse,
    response_model_exclude_none=True,
    summary="Extract serial numbers from banknote photos",
    description="""
    Upload one or more images (form field `receipts`). Each image is
    preprocessed, recognized and scanned for serial numbers of the form
    two letters, eight digits, one letter (e.g. `LB42836549R`).

    **Per-file isolation:** a file whose recognition fails shows up as
    `{"filename", "error"}` in `results`; the rest of the batch is still
    processed and the request still succeeds.

    **Counting:** a serial already in the registry is counted under
    `duplicates`, never inserted twice.
    """,
    responses={
        400: {"description": "No files, or too many files in one request"},
        409: {"description": "Registry wipe in progress"},
        413: {"description": "A file exceeds the upload size limit"},
    },
)
async def extract_serials(
    receipts: Optional[List[UploadFile]] = File(default=None, description="Banknote images"),
    coordinator: IngestionCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
) -> ExtractResponse:
    if not receipts:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded.")

    if len(receipts) > settings.max_files_per_batch:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files: at most {settings.max_files_per_batch} per request.",
        )

    # Validate the whole request before any file is processed
    images: List[UploadedImage] = []
    for upload in receipts:
        content = await upload.read()
        if len(content) > settings.max_upload_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File {upload.filename} exceeds the {settings.max_upload_size_mb}MB limit.",
            )
        images.append(UploadedImage(filename=upload.filename or "unnamed", content=content))

    logger.info("Received files for extraction", files=len(images))
    summary = await coordinator.ingest(images)
    return ExtractResponse.from_summary(summary)
