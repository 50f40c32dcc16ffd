"""
Image extraction schemas

Response models for the OCR ingestion endpoint. Field names on the wire
follow the camelCase layout the web client already consumes.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from serial_registry.services.ingestion import BatchSummary, FileResult


class FileResultResponse(BaseModel):
    """Per-file result: counts on success, ``error`` otherwise."""

    filename: str = Field(..., description="Uploaded file name")
    found: Optional[int] = Field(default=None, ge=0, description="Unique candidates read from the image")
    new: Optional[int] = Field(default=None, ge=0, description="Candidates inserted as new records")
    duplicates: Optional[int] = Field(default=None, ge=0, description="Candidates already in the registry")
    error: Optional[str] = Field(default=None, description="Why the file could not be processed")

    @classmethod
    def from_result(cls, result: FileResult) -> "FileResultResponse":
        if not result.ok:
            return cls(filename=result.filename, error=result.error)
        return cls(
            filename=result.filename,
            found=result.found,
            new=result.new,
            duplicates=result.duplicates,
        )


class ExtractResponse(BaseModel):
    """Batch summary returned by POST /extract."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "totalCandidates": 3,
                "inserted": 2,
                "duplicates": 1,
                "results": [
                    {"filename": "bill1.jpg", "found": 2, "new": 2, "duplicates": 0},
                    {"filename": "bill2.jpg", "error": "Processing failed: OCR timed out after 60s"},
                    {"filename": "bill3.jpg", "found": 1, "new": 0, "duplicates": 1},
                ],
            }
        },
    )

    total_candidates: int = Field(..., ge=0, alias="totalCandidates", description="Candidates across all files")
    inserted: int = Field(..., ge=0, description="Newly inserted serials")
    duplicates: int = Field(..., ge=0, description="Serials already present")
    results: List[FileResultResponse] = Field(default_factory=list, description="One entry per uploaded file")

    @classmethod
    def from_summary(cls, summary: BatchSummary) -> "ExtractResponse":
        return cls(
            total_candidates=summary.total_candidates,
            inserted=summary.inserted,
            duplicates=summary.duplicates,
            results=[FileResultResponse.from_result(result) for result in summary.results],
        )
