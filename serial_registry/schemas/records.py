"""
Serial record schemas

Request and response models for the registry read views and the manual
write operations.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from serial_registry.models import RecordStatus
from serial_registry.utils.normalization import NormalizationError, normalize_serial


class SerialRecordRead(BaseModel):
    """One registry row"""

    id: int = Field(..., description="Record ID")
    serial_number: str = Field(..., description="Canonical serial number", examples=["LB42836549R"])
    source_filename: Optional[str] = Field(default=None, description="Originating image or sentinel")
    extracted_at: datetime = Field(..., description="When the serial was recorded")
    status: str = Field(..., description="confirmed / imported / flagged")


class PaginationInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current: int = Field(..., ge=1, description="Current page")
    limit: int = Field(..., ge=1, description="Page size")
    total_records: int = Field(..., ge=0, alias="totalRecords", description="Matching records")
    total_pages: int = Field(..., ge=0, alias="totalPages", description="Number of pages")


class RecordsPage(BaseModel):
    data: List[SerialRecordRead] = Field(default_factory=list)
    pagination: PaginationInfo


class BatchAddRequest(BaseModel):
    """Manually entered serials, one per entry."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"serials": ["LB42836549R", "2. MF71554741C", "LB42836549R (duplicate)"]}
        }
    )

    serials: List[str] = Field(..., max_length=10000, description="Serial numbers to add")


class BatchAddResponse(BaseModel):
    added: int = Field(..., ge=0, description="Newly inserted serials")
    duplicates: int = Field(..., ge=0, description="Serials already present")
    invalid: int = Field(default=0, ge=0, description="Entries with no usable serial")


class RecordUpdateRequest(BaseModel):
    """Edit of a single record"""

    serial_number: str = Field(..., min_length=1, max_length=32, description="New serial number")
    status: RecordStatus = Field(default=RecordStatus.CONFIRMED, description="New status")

    @field_validator("serial_number")
    @classmethod
    def validate_serial_number(cls, v: str) -> str:
        try:
            return normalize_serial(v)
        except NormalizationError as e:
            raise ValueError(e.message)


class OperationResponse(BaseModel):
    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Result message")


class StatsResponse(BaseModel):
    total: int = Field(..., ge=0, description="Records in the registry")
    by_status: Dict[str, int] = Field(default_factory=dict, description="Record count per status")
