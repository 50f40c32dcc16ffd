import time

import pytest
import pytesseract

from serial_registry.core.exceptions import RecognitionUnavailable
from serial_registry.services import recognition
from serial_registry.services.recognition import (
    ProgressBroadcaster,
    RecognitionProgress,
    TesseractRecognizer,
    build_tesseract_config,
)
from tests.conftest import png_bytes


def test_build_tesseract_config():
    assert build_tesseract_config("ABC123") == "--psm 6 -c tessedit_char_whitelist=ABC123"
    assert build_tesseract_config(None) == "--psm 6"
    assert build_tesseract_config("", psm=7) == "--psm 7"


def test_broadcaster_isolates_failing_observers():
    received = []

    def broken(event: RecognitionProgress) -> None:
        raise RuntimeError("observer crashed")

    broadcaster = ProgressBroadcaster([broken, received.append])
    broadcaster.publish("recognizing text", 1.7)

    assert received == [RecognitionProgress(status="recognizing text", progress=1.0)]


def test_broadcaster_unsubscribe():
    received = []
    broadcaster = ProgressBroadcaster()
    broadcaster.subscribe(received.append)
    broadcaster.publish("loading image", -0.5)
    broadcaster.unsubscribe(received.append)
    broadcaster.publish("recognized text", 1.0)

    assert received == [RecognitionProgress(status="loading image", progress=0.0)]


@pytest.mark.asyncio
async def test_recognize_returns_text_and_reports_progress(monkeypatch):
    calls = {}

    def fake_image_to_string(image, lang, config, timeout):
        calls["lang"] = lang
        calls["config"] = config
        calls["timeout"] = timeout
        return "LB42836549R\n"

    monkeypatch.setattr(recognition.pytesseract, "image_to_string", fake_image_to_string)
    events = []

    recognizer = TesseractRecognizer(language="eng", char_whitelist="AB12", timeout=30)
    text = await recognizer.recognize(png_bytes(), observer=events.append)

    assert text == "LB42836549R\n"
    assert calls == {"lang": "eng", "config": "--psm 6 -c tessedit_char_whitelist=AB12", "timeout": 30}
    assert [event.progress for event in events] == [0.0, 0.5, 1.0]


@pytest.mark.asyncio
async def test_recognize_without_observer(monkeypatch):
    monkeypatch.setattr(recognition.pytesseract, "image_to_string", lambda image, lang, config, timeout: "")

    assert await TesseractRecognizer().recognize(png_bytes()) == ""


@pytest.mark.asyncio
async def test_missing_engine_is_unavailable(monkeypatch):
    def not_installed(image, lang, config, timeout):
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(recognition.pytesseract, "image_to_string", not_installed)

    with pytest.raises(RecognitionUnavailable) as excinfo:
        await TesseractRecognizer().recognize(png_bytes())
    assert excinfo.value.code == "E_RECOGNITION_UNAVAILABLE"


@pytest.mark.asyncio
async def test_unreadable_image_is_unavailable():
    with pytest.raises(RecognitionUnavailable):
        await TesseractRecognizer().recognize(b"not an image")


@pytest.mark.asyncio
async def test_engine_timeout_is_forwarded_and_reported(monkeypatch):
    received = {}

    def timed_out(image, lang, config, timeout):
        received["timeout"] = timeout
        raise RuntimeError("Tesseract process timeout")

    monkeypatch.setattr(recognition.pytesseract, "image_to_string", timed_out)

    with pytest.raises(RecognitionUnavailable, match="timed out after 0.2s"):
        await TesseractRecognizer(timeout=0.2).recognize(png_bytes())
    assert received["timeout"] == 0.2


@pytest.mark.asyncio
async def test_engine_failure_is_unavailable(monkeypatch):
    def failing(image, lang, config, timeout):
        raise pytesseract.TesseractError(1, "Failed loading language 'xyz'")

    monkeypatch.setattr(recognition.pytesseract, "image_to_string", failing)

    with pytest.raises(RecognitionUnavailable, match="OCR engine failed: Failed loading language"):
        await TesseractRecognizer().recognize(png_bytes())


@pytest.mark.asyncio
async def test_other_engine_runtime_errors_propagate(monkeypatch):
    def broken(image, lang, config, timeout):
        raise RuntimeError("unexpected engine state")

    monkeypatch.setattr(recognition.pytesseract, "image_to_string", broken)

    with pytest.raises(RuntimeError, match="unexpected engine state"):
        await TesseractRecognizer().recognize(png_bytes())


@pytest.mark.asyncio
async def test_outer_guard_when_engine_ignores_timeout(monkeypatch):
    def slow(image, lang, config, timeout):
        time.sleep(0.5)
        return "LB42836549R"

    monkeypatch.setattr(recognition.pytesseract, "image_to_string", slow)
    monkeypatch.setattr(recognition, "ENGINE_TIMEOUT_GRACE", 0.0)

    with pytest.raises(RecognitionUnavailable, match="timed out"):
        await TesseractRecognizer(timeout=0.05).recognize(png_bytes())
