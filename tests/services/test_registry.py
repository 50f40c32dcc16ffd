import pytest

from serial_registry.services.registry import RegistryService, UpdateOutcome, escape_like
from tests.conftest import TestDataFactory


@pytest.fixture
def service(store):
    return RegistryService(store)


@pytest.mark.asyncio
async def test_add_serials_counts_added_duplicates_and_invalid(service):
    result = await service.add_serials([
        "LB42836549R",
        "2. mf71554741c",
        "LB42836549R (duplicate)",
        "---",
    ])

    assert (result.added, result.duplicates, result.invalid) == (2, 1, 1)
    assert await service.list_serials() == ["LB42836549R", "MF71554741C"]

    record = (await service.get_records())["data"][0]
    assert record["source_filename"] == "manual_entry"
    assert record["status"] == "confirmed"


@pytest.mark.asyncio
async def test_get_records_pages_newest_first(service):
    await service.add_serials(["AA11111111A", "BB22222222B", "CC33333333C"])

    page = await service.get_records(page=1, limit=2)
    assert [row["serial_number"] for row in page["data"]] == ["CC33333333C", "BB22222222B"]
    assert page["pagination"] == {"current": 1, "limit": 2, "totalRecords": 3, "totalPages": 2}

    page = await service.get_records(page=2, limit=2)
    assert [row["serial_number"] for row in page["data"]] == ["AA11111111A"]


@pytest.mark.asyncio
async def test_get_records_filters_and_coerces_paging(service):
    await service.add_serials(["AA11111111A", "BB22222222B"])

    page = await service.get_records(page=0, limit=-5, q="bb2")
    assert page["pagination"]["current"] == 1
    assert page["pagination"]["limit"] == 20
    assert [row["serial_number"] for row in page["data"]] == ["BB22222222B"]

    empty = await service.get_records(q="ZZ")
    assert empty["data"] == []
    assert empty["pagination"]["totalPages"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("q", ["%", "_", "A_1", "\\"])
async def test_get_records_treats_wildcards_literally(service, q):
    await service.add_serials(["AA11111111A", "BB22222222B"])

    page = await service.get_records(q=q)

    assert page["data"] == []
    assert page["pagination"]["totalRecords"] == 0


def test_escape_like():
    assert escape_like("LB42836549R") == "LB42836549R"
    assert escape_like("5%_\\") == "5\\%\\_\\\\"


@pytest.mark.asyncio
async def test_update_record(service, store):
    await TestDataFactory.add_serial(store, "LB42836549R")
    await TestDataFactory.add_serial(store, "MF71554741C")
    target = await store.get_one("SELECT id FROM serials WHERE serial_number = ?", ["MF71554741C"])

    assert await service.update_record(target["id"], "lb42836549r", "confirmed") is UpdateOutcome.CONFLICT
    assert await service.update_record(9999, "AA11111111A", "confirmed") is UpdateOutcome.NOT_FOUND
    assert await service.update_record(target["id"], "aa-11111111-a", "flagged") is UpdateOutcome.UPDATED

    record = await service.get_record(target["id"])
    assert record["serial_number"] == "AA11111111A"
    assert record["status"] == "flagged"


@pytest.mark.asyncio
async def test_update_record_rejects_unknown_status(service, store):
    await TestDataFactory.add_serial(store)
    with pytest.raises(ValueError):
        await service.update_record(1, "LB42836549R", "lost")


@pytest.mark.asyncio
async def test_delete_serial(service, store):
    await TestDataFactory.add_serial(store)

    assert await service.delete_serial("lb42836549r") is True
    assert await service.delete_serial("LB42836549R") is False
    assert await service.delete_serial("???") is False


@pytest.mark.asyncio
async def test_stats(service, store):
    await TestDataFactory.add_serial(store, "AA11111111A", status="confirmed")
    await TestDataFactory.add_serial(store, "BB22222222B", status="flagged")
    await TestDataFactory.add_serial(store, "CC33333333C", status="flagged")

    assert await service.count() == 3
    assert await service.stats() == {
        "total": 3,
        "by_status": {"confirmed": 1, "imported": 0, "flagged": 2},
    }
