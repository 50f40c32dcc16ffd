"""
Domain exceptions.

Each carries a short machine-readable ``code`` alongside the human message,
so the route layer can map them onto HTTP responses without string matching.
"""


class RegistryError(Exception):
    """Base class for registry failures."""

    code = "E_REGISTRY"

    def __init__(self, message: str, code: str = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class RegistryBusy(RegistryError):
    """Raised while a registry wipe is in flight."""

    code = "E_REGISTRY_BUSY"


class UnsupportedExportFormat(RegistryError):
    """Unknown export format, or a format the active backend cannot produce."""

    code = "E_EXPORT_FORMAT"


class ImportFormatError(RegistryError):
    """The import payload is empty or cannot be decoded."""

    code = "E_IMPORT_FORMAT"


class RecognitionUnavailable(Exception):
    """
    The recognition capability could not be invoked at all.

    Distinct from recognition returning empty or garbage text, which is a
    valid result.
    """

    code = "E_RECOGNITION_UNAVAILABLE"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
