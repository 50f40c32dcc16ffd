"""
Ingestion coordinator

Runs uploaded banknote photos through preprocess -> recognize -> extract ->
insert, one store transaction per file, and aggregates the counts the caller
reports back. A file that fails recognition becomes an error entry in the
summary; it never aborts the rest of the batch.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

from serial_registry.core.logging import get_logger
from serial_registry.models import SERIALS_TABLE
from serial_registry.services.extraction import extract
from serial_registry.services.preprocessing import DEFAULT_TARGET_WIDTH, preprocess
from serial_registry.services.recognition import (
    DEFAULT_CHAR_WHITELIST,
    DEFAULT_LANGUAGE,
    RecognitionProgress,
    Recognizer,
)
from serial_registry.services.registry_store import RegistryStore

logger = get_logger(__name__)

INSERT_SERIAL_SQL = (
    f"INSERT INTO {SERIALS_TABLE} (serial_number, source_filename) VALUES (?, ?) "
    "ON CONFLICT (serial_number) DO NOTHING"
)


class BatchState(str, Enum):
    """Batch lifecycle"""
    IDLE = "idle"
    PROCESSING = "processing"
    AGGREGATING = "aggregating"
    DONE = "done"


@dataclass(frozen=True)
class UploadedImage:
    filename: str
    content: bytes


@dataclass
class FileResult:
    """Outcome for one file: counts on success, an error message otherwise."""
    filename: str
    found: int = 0
    new: int = 0
    duplicates: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchSummary:
    total_candidates: int = 0
    inserted: int = 0
    duplicates: int = 0
    results: list[FileResult] = field(default_factory=list)
    state: BatchState = BatchState.IDLE

    @property
    def failed_files(self) -> int:
        return sum(1 for result in self.results if not result.ok)

    def add(self, result: FileResult) -> None:
        self.results.append(result)
        if result.ok:
            self.total_candidates += result.found
            self.inserted += result.new
            self.duplicates += result.duplicates


class IngestionCoordinator:
    """
    Turns a batch of images into registry rows.

    Args:
        store: Registry store the serials are written to
        recognizer: OCR capability
        preprocessor: ``(bytes, width) -> bytes`` image normalizer; a failure falls back to the raw buffer
        extractor: ``text -> set[str]`` candidate extractor
        concurrency: Maximum files in flight at once (1 = strictly sequential)
    """

    def __init__(
        self,
        store: RegistryStore,
        recognizer: Recognizer,
        preprocessor: Callable[..., bytes] = preprocess,
        extractor: Callable[[str], set[str]] = extract,
        concurrency: int = 1,
        language: str = DEFAULT_LANGUAGE,
        char_whitelist: str = DEFAULT_CHAR_WHITELIST,
        target_width: int = DEFAULT_TARGET_WIDTH,
    ):
        self.store = store
        self.recognizer = recognizer
        self.preprocessor = preprocessor
        self.extractor = extractor
        self.concurrency = max(1, concurrency)
        self.language = language
        self.char_whitelist = char_whitelist
        self.target_width = target_width

    async def ingest(self, files: Sequence[UploadedImage]) -> BatchSummary:
        """
        Process a batch of images.

        Results keep the upload order regardless of the concurrency level.

        Raises:
            RegistryBusy: A registry wipe is in flight
        """
        self.store.ensure_available()

        summary = BatchSummary(state=BatchState.PROCESSING)
        logger.info("Batch started", files=len(files), concurrency=self.concurrency)

        if self.concurrency == 1:
            results = [await self.process_file(image) for image in files]
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def worker(image: UploadedImage) -> FileResult:
                async with semaphore:
                    return await self.process_file(image)

            # Each worker returns its own result; counters are merged below
            results = await asyncio.gather(*(worker(image) for image in files))

        summary.state = BatchState.AGGREGATING
        for result in results:
            summary.add(result)
        summary.state = BatchState.DONE

        logger.info(
            "Batch complete",
            files=len(files),
            failed_files=summary.failed_files,
            total_candidates=summary.total_candidates,
            inserted=summary.inserted,
            duplicates=summary.duplicates,
        )
        return summary

    async def process_file(self, image: UploadedImage) -> FileResult:
        """Run one file through the pipeline, converting failures into an error entry."""
        filename = image.filename
        logger.info("Processing file", filename=filename, size=len(image.content))

        try:
            prepared = self.preprocessor(image.content, self.target_width)
        except Exception as exc:
            logger.warning(
                "Preprocessing failed, using original buffer",
                filename=filename,
                error=str(exc),
            )
            prepared = image.content

        def on_progress(event: RecognitionProgress) -> None:
            logger.debug(
                "OCR progress",
                filename=filename,
                status=event.status,
                progress=f"{event.progress * 100:.0f}%",
            )

        try:
            text = await self.recognizer.recognize(
                prepared,
                language=self.language,
                char_whitelist=self.char_whitelist,
                observer=on_progress,
            )
            candidates = sorted(self.extractor(text))
        except Exception as exc:
            logger.error("OCR failed", filename=filename, error=str(exc))
            return FileResult(filename=filename, error=f"Processing failed: {exc}")

        try:
            new, duplicates = await self._insert_candidates(candidates, filename)
        except Exception as exc:
            logger.error("Storing serials failed", filename=filename, error=str(exc), exc_info=True)
            return FileResult(filename=filename, error=f"Processing failed: {exc}")

        logger.info(
            "File processed",
            filename=filename,
            found=len(candidates),
            new=new,
            duplicates=duplicates,
        )
        return FileResult(
            filename=filename,
            found=len(candidates),
            new=new,
            duplicates=duplicates,
        )

    async def _insert_candidates(self, candidates: Sequence[str], filename: str) -> tuple[int, int]:
        new = 0
        duplicates = 0
        if not candidates:
            return new, duplicates

        async with self.store.transaction() as tx:
            for serial in candidates:
                result = await tx.run(INSERT_SERIAL_SQL, [serial, filename])
                if result.changed:
                    new += 1
                else:
                    duplicates += 1
        return new, duplicates
