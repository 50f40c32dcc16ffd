"""
Shared test configuration and helpers.
"""
import os
import tempfile

# Test environment, set before the application is imported
os.environ.pop("DATABASE_URL", None)
os.environ["SQLITE_PATH"] = ":memory:"
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_DIR"] = os.path.join(tempfile.gettempdir(), "serial-registry-test-logs")

import io
from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from serial_registry.api.deps import get_recognizer, get_store
from serial_registry.main import app
from serial_registry.services.recognition import ProgressBroadcaster, ProgressObserver
from serial_registry.services.registry_store import EmbeddedRegistryStore


class FakeRecognizer:
    """
    Recognizer returning canned text per image buffer.

    A mapped ``Exception`` instance is raised instead of returned; unknown
    buffers recognize as empty text.
    """

    def __init__(self, texts: Optional[Dict[bytes, Union[str, Exception]]] = None):
        self.texts = dict(texts or {})
        self.calls: List[bytes] = []

    async def recognize(
        self,
        buffer: bytes,
        language: Optional[str] = None,
        char_whitelist: Optional[str] = None,
        observer: Optional[ProgressObserver] = None,
    ) -> str:
        self.calls.append(buffer)
        progress = ProgressBroadcaster([observer] if observer else [])
        progress.publish("recognizing text", 0.5)
        outcome = self.texts.get(buffer, "")
        if isinstance(outcome, Exception):
            raise outcome
        progress.publish("recognized text", 1.0)
        return outcome


def passthrough(buffer: bytes, target_width: int = 2000) -> bytes:
    return buffer


def png_bytes(width: int = 100, height: int = 50, color: str = "white") -> bytes:
    output = io.BytesIO()
    Image.new("RGB", (width, height), color).save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
async def store(tmp_path) -> AsyncGenerator[EmbeddedRegistryStore, None]:
    """File-backed embedded store, fresh for every test."""
    registry = EmbeddedRegistryStore(str(tmp_path / "serials.db"))
    await registry.connect()
    yield registry
    await registry.close()


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
async def client(store, recognizer) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to the test store and fake recognizer."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_recognizer] = lambda: recognizer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestDataFactory:
    """Test data factory"""

    @staticmethod
    async def add_serial(
        store,
        serial_number: str = "LB42836549R",
        source_filename: Optional[str] = "bill.jpg",
        status: str = "confirmed",
        extracted_at: Optional[str] = None,
    ) -> None:
        if extracted_at is None:
            await store.run(
                "INSERT INTO serials (serial_number, source_filename, status) VALUES (?, ?, ?)",
                [serial_number, source_filename, status],
            )
        else:
            await store.run(
                "INSERT INTO serials (serial_number, source_filename, extracted_at, status) "
                "VALUES (?, ?, ?, ?)",
                [serial_number, source_filename, extracted_at, status],
            )
