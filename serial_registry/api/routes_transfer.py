"""
Import / export routes

Download the registry as CSV, SQL dump or raw database file, and merge a
CSV file back into it.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from serial_registry.api.deps import get_reconciler
from serial_registry.core.config import Settings, get_settings
from serial_registry.core.exceptions import ImportFormatError
from serial_registry.schemas.transfer import ImportResponse
from serial_registry.services.reconciler import BulkReconciler

router = APIRouter()


@router.get(
    "/export",
    summary="Export the registry",
    description="""
    Download every record.

    - `csv` (default): `serial_number,source_filename,extracted_at,status`
    - `sql`: CREATE TABLE plus one INSERT per record
    - `db`: raw copy of the SQLite file; only available on the embedded backend
    """,
    responses={
        200: {"description": "File download"},
        400: {"description": "Unsupported format for the active backend"},
    },
)
async def export_registry(
    format: str = Query("csv", description="csv, sql or db"),
    reconciler: BulkReconciler = Depends(get_reconciler),
) -> Response:
    payload = await reconciler.export(format)
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )


@router.post(
    "/import",
    response_model=ImportResponse,
    summary="Import serials from CSV",
    description="""
    Merge a CSV file (form field `database`) into the registry.

    A first line containing `serial_number` is treated as a header. Lines
    without commas are bare serial numbers. An imported row overwrites the
    filename, timestamp and status of an existing serial.
    """,
    responses={
        400: {"description": "No file, empty file or undecodable file"},
        409: {"description": "Registry wipe in progress"},
        413: {"description": "File exceeds the import size limit"},
    },
)
async def import_registry(
    database: Optional[UploadFile] = File(default=None, description="CSV file"),
    reconciler: BulkReconciler = Depends(get_reconciler),
    settings: Settings = Depends(get_settings),
) -> ImportResponse:
    if database is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No CSV file uploaded.")

    content = await database.read()
    if len(content) > settings.max_import_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"CSV file exceeds the {settings.max_import_size_mb}MB limit.",
        )

    try:
        csv_text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ImportFormatError("CSV file must be UTF-8 encoded.")

    report = await reconciler.import_csv(csv_text)
    return ImportResponse.from_report(report)
