from fastapi import Depends, HTTPException, Request, status

from serial_registry.core.config import Settings, get_settings
from serial_registry.services.ingestion import IngestionCoordinator
from serial_registry.services.reconciler import BulkReconciler
from serial_registry.services.recognition import Recognizer
from serial_registry.services.registry import RegistryService
from serial_registry.services.registry_store import RegistryStore


def get_store(request: Request) -> RegistryStore:
    """
    The registry store selected at startup.

    The backend is resolved once in the application lifespan and kept on
    ``app.state``; nothing downstream re-reads the configuration.
    """
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Registry store not initialized",
        )
    return store


def get_recognizer(request: Request) -> Recognizer:
    recognizer = getattr(request.app.state, "recognizer", None)
    if recognizer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="OCR engine not initialized",
        )
    return recognizer


def get_registry_service(store: RegistryStore = Depends(get_store)) -> RegistryService:
    return RegistryService(store)


def get_reconciler(store: RegistryStore = Depends(get_store)) -> BulkReconciler:
    return BulkReconciler(store)


def get_coordinator(
    store: RegistryStore = Depends(get_store),
    recognizer: Recognizer = Depends(get_recognizer),
    settings: Settings = Depends(get_settings),
) -> IngestionCoordinator:
    return IngestionCoordinator(
        store,
        recognizer,
        concurrency=settings.ingest_concurrency,
        language=settings.ocr_language,
        char_whitelist=settings.ocr_char_whitelist,
        target_width=settings.preprocess_target_width,
    )
