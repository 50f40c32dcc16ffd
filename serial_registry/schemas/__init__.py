"""Pydantic request/response models"""

from .extract import ExtractResponse, FileResultResponse
from .records import (
    BatchAddRequest,
    BatchAddResponse,
    OperationResponse,
    PaginationInfo,
    RecordsPage,
    RecordUpdateRequest,
    SerialRecordRead,
    StatsResponse,
)
from .transfer import ImportResponse

__all__ = [
    "ExtractResponse",
    "FileResultResponse",
    "BatchAddRequest",
    "BatchAddResponse",
    "OperationResponse",
    "PaginationInfo",
    "RecordsPage",
    "RecordUpdateRequest",
    "SerialRecordRead",
    "StatsResponse",
    "ImportResponse",
]
