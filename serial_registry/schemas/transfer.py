"""Import/export schemas"""

from pydantic import BaseModel, ConfigDict, Field

from serial_registry.services.reconciler import ImportReport


class ImportResponse(BaseModel):
    """
    CSV import result

    ``processed`` counts data lines (header excluded); ``skipped`` counts
    lines without a usable serial and rows the store rejected.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Imported 120 serials successfully.",
                "processed": 121,
                "upserted": 120,
                "skipped": 1,
            }
        }
    )

    success: bool = Field(default=True, description="Whether the import ran")
    message: str = Field(..., description="Human readable summary")
    processed: int = Field(..., ge=0, description="Data lines read")
    upserted: int = Field(..., ge=0, description="Rows inserted or overwritten")
    skipped: int = Field(..., ge=0, description="Rows skipped as invalid")

    @classmethod
    def from_report(cls, report: ImportReport) -> "ImportResponse":
        return cls(
            success=True,
            message=report.message,
            processed=report.processed,
            upserted=report.upserted,
            skipped=report.skipped,
        )
