import pytest

from serial_registry.core.config import Settings, get_settings
from serial_registry.core.exceptions import RecognitionUnavailable
from serial_registry.main import app


def receipts(*files):
    return [("receipts", (name, content, "image/jpeg")) for name, content in files]


@pytest.mark.asyncio
async def test_extract_batch_with_failed_file(client, recognizer):
    recognizer.texts.update({
        b"bill-1": "LB42836549R some noise MF71554741C LB42836549R",
        b"bill-2": RecognitionUnavailable("OCR timed out after 60s"),
        b"bill-3": "serial lb42836549r",
    })

    response = await client.post(
        "/extract",
        files=receipts(("file1.jpg", b"bill-1"), ("file2.jpg", b"bill-2"), ("file3.jpg", b"bill-3")),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["totalCandidates"] == 3
    assert body["inserted"] == 2
    assert body["duplicates"] == 1
    assert body["results"] == [
        {"filename": "file1.jpg", "found": 2, "new": 2, "duplicates": 0},
        {"filename": "file2.jpg", "error": "Processing failed: OCR timed out after 60s"},
        {"filename": "file3.jpg", "found": 1, "new": 0, "duplicates": 1},
    ]

    serials = await client.get("/serials")
    assert serials.json() == ["LB42836549R", "MF71554741C"]


@pytest.mark.asyncio
async def test_extract_same_image_twice(client, recognizer):
    recognizer.texts[b"bill-1"] = "LB42836549R"

    await client.post("/extract", files=receipts(("bill.jpg", b"bill-1")))
    response = await client.post("/api/extract", files=receipts(("bill.jpg", b"bill-1")))

    body = response.json()
    assert (body["inserted"], body["duplicates"]) == (0, 1)


@pytest.mark.asyncio
async def test_extract_without_files(client):
    response = await client.post("/extract", data={"note": "nothing attached"})

    assert response.status_code == 400
    assert response.json()["detail"] == "No files uploaded."


@pytest.mark.asyncio
async def test_extract_file_limits(client, recognizer):
    app.dependency_overrides[get_settings] = lambda: Settings(max_files_per_batch=2, max_upload_size_mb=1)

    too_many = await client.post(
        "/extract",
        files=receipts(("a.jpg", b"a"), ("b.jpg", b"b"), ("c.jpg", b"c")),
    )
    assert too_many.status_code == 400

    too_large = await client.post(
        "/extract",
        files=receipts(("small.jpg", b"small"), ("huge.jpg", b"0" * (1024 * 1024 + 1))),
    )
    assert too_large.status_code == 413

    # Nothing is processed when the request is rejected
    assert recognizer.calls == []


@pytest.mark.asyncio
async def test_extract_rejected_during_wipe(client, store):
    store._wiping = True
    try:
        response = await client.post("/extract", files=receipts(("bill.jpg", b"bill-1")))
    finally:
        store._wiping = False

    assert response.status_code == 409
    assert response.json()["code"] == "E_REGISTRY_BUSY"
