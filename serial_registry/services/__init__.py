"""
Service layer

Image preprocessing, recognition, candidate extraction, the registry store
and the ingestion / registry / bulk transfer services built on it.
"""

from serial_registry.services.extraction import extract, is_valid_serial
from serial_registry.services.ingestion import (
    BatchSummary,
    FileResult,
    IngestionCoordinator,
    UploadedImage,
)
from serial_registry.services.preprocessing import preprocess
from serial_registry.services.reconciler import BulkReconciler, ImportReport
from serial_registry.services.recognition import TesseractRecognizer
from serial_registry.services.registry import RegistryService, UpdateOutcome
from serial_registry.services.registry_store import (
    EmbeddedRegistryStore,
    NetworkedRegistryStore,
    RegistryStore,
    RunResult,
    create_registry_store,
)

__all__ = [
    "extract",
    "is_valid_serial",
    "BatchSummary",
    "FileResult",
    "IngestionCoordinator",
    "UploadedImage",
    "preprocess",
    "BulkReconciler",
    "ImportReport",
    "TesseractRecognizer",
    "RegistryService",
    "UpdateOutcome",
    "EmbeddedRegistryStore",
    "NetworkedRegistryStore",
    "RegistryStore",
    "RunResult",
    "create_registry_store",
]
