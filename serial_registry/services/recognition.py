"""
Recognition adapter

Wraps the Tesseract engine (through pytesseract) behind a small async
interface. Progress is published to optional observers; nothing in the
pipeline depends on anyone listening.
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol

import pytesseract
from PIL import Image

from serial_registry.core.exceptions import RecognitionUnavailable
from serial_registry.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LANGUAGE = "eng"
DEFAULT_CHAR_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# The engine enforces the timeout itself; this outer margin only covers image decoding
ENGINE_TIMEOUT_GRACE = 5.0


@dataclass(frozen=True)
class RecognitionProgress:
    """One progress notification: a status string and a fraction in [0, 1]."""
    status: str
    progress: float


ProgressObserver = Callable[[RecognitionProgress], None]


class ProgressBroadcaster:
    """
    Fans progress events out to subscribers.

    A failing subscriber is logged and skipped; it can never interrupt
    recognition.
    """

    def __init__(self, observers: Iterable[ProgressObserver] = ()):
        self._observers: list[ProgressObserver] = list(observers)

    def subscribe(self, observer: ProgressObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: ProgressObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def publish(self, status: str, progress: float) -> None:
        event = RecognitionProgress(status=status, progress=max(0.0, min(1.0, progress)))
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as exc:
                logger.warning("Progress observer failed", status=status, error=str(exc))


class Recognizer(Protocol):
    """Anything that can turn an image buffer into raw text."""

    async def recognize(
        self,
        buffer: bytes,
        language: Optional[str] = None,
        char_whitelist: Optional[str] = None,
        observer: Optional[ProgressObserver] = None,
    ) -> str:
        ...


def build_tesseract_config(char_whitelist: Optional[str], psm: int = 6) -> str:
    """Build the tesseract CLI config string for a constrained character set."""
    config = f"--psm {psm}"
    if char_whitelist:
        config += f" -c tessedit_char_whitelist={char_whitelist}"
    return config


class TesseractRecognizer:
    """Recognizer backed by the Tesseract OCR engine."""

    def __init__(
        self,
        language: str = DEFAULT_LANGUAGE,
        char_whitelist: str = DEFAULT_CHAR_WHITELIST,
        timeout: float = 60,
        tesseract_cmd: Optional[str] = None,
    ):
        self.language = language
        self.char_whitelist = char_whitelist
        self.timeout = timeout
        self.tesseract_cmd = tesseract_cmd

    def _recognize_sync(self, buffer: bytes, language: str, char_whitelist: str) -> str:
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        try:
            with Image.open(io.BytesIO(buffer)) as image:
                image.load()
                return pytesseract.image_to_string(
                    image,
                    lang=language,
                    config=build_tesseract_config(char_whitelist),
                    timeout=self.timeout,
                )
        except pytesseract.TesseractNotFoundError as exc:
            raise RecognitionUnavailable(f"OCR engine unavailable: {exc}") from exc
        except pytesseract.TesseractError as exc:
            raise RecognitionUnavailable(f"OCR engine failed: {exc.message}") from exc
        except RuntimeError as exc:
            # pytesseract kills the tesseract process and raises this on timeout
            if "timeout" not in str(exc).lower():
                raise
            raise RecognitionUnavailable(f"OCR timed out after {self.timeout:g}s") from exc
        except OSError as exc:
            # Pillow raises OSError (UnidentifiedImageError) for unreadable images
            raise RecognitionUnavailable(f"Image could not be read: {exc}") from exc

    async def recognize(
        self,
        buffer: bytes,
        language: Optional[str] = None,
        char_whitelist: Optional[str] = None,
        observer: Optional[ProgressObserver] = None,
    ) -> str:
        """
        Recognize the text in an image buffer.

        Args:
            buffer: Encoded image bytes
            language: Tesseract language code, defaults to the configured one
            char_whitelist: Allowed output characters, defaults to the configured set
            observer: Optional progress subscriber

        Returns:
            str: Raw recognized text, possibly empty

        Raises:
            RecognitionUnavailable: Engine missing, engine error or timeout
        """
        progress = ProgressBroadcaster([observer] if observer else [])
        progress.publish("loading image", 0.0)

        try:
            progress.publish("recognizing text", 0.5)
            text = await asyncio.wait_for(
                asyncio.to_thread(
                    self._recognize_sync,
                    buffer,
                    language or self.language,
                    char_whitelist if char_whitelist is not None else self.char_whitelist,
                ),
                timeout=self.timeout + ENGINE_TIMEOUT_GRACE,
            )
        except asyncio.TimeoutError as exc:
            raise RecognitionUnavailable(
                f"OCR timed out after {self.timeout:g}s"
            ) from exc

        progress.publish("recognized text", 1.0)
        return text
