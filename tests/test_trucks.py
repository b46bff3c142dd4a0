from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fleetstore._backend import MemoryBackend
from fleetstore.exceptions import NotFoundError, ValidationError
from fleetstore.models.fleet import TruckInput, TruckStatus, TruckUpdate
from fleetstore.registries.trucks import TruckRegistry
from fleetstore.store import RecordStore

_NOW = datetime(2024, 6, 1, tzinfo=UTC)


def _registry() -> TruckRegistry:
    return TruckRegistry(RecordStore(MemoryBackend()), clock=lambda: _NOW)


def _input(**overrides: object) -> TruckInput:
    values: dict[str, object] = {
        "make": " Volvo ",
        "model": "VNL 860",
        "year": 2022,
        "vin": " 1hgbh41jxmn109186 ",
        "license_plate": "abc-1234",
    }
    values.update(overrides)
    return TruckInput(**values)


@pytest.mark.asyncio
async def test_register_normalizes_fields() -> None:
    registry = _registry()

    truck = await registry.register("user_o", _input())

    assert truck.id.startswith("truck_")
    assert truck.make == "Volvo"
    assert truck.vin == "1HGBH41JXMN109186"
    assert truck.license_plate == "ABC-1234"
    assert truck.status == TruckStatus.ACTIVE
    assert truck.registered_at == _NOW
    assert await registry.by_owner("user_o") == [truck]
    assert await registry.by_owner("user_other") == []


@pytest.mark.parametrize("year", [1899, 2026])
@pytest.mark.asyncio
async def test_year_out_of_range(year: int) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await _registry().register("user_o", _input(year=year))
    assert exc_info.value.field == "year"


@pytest.mark.asyncio
async def test_next_model_year_is_accepted() -> None:
    truck = await _registry().register("user_o", _input(year=2025))
    assert truck.year == 2025


@pytest.mark.asyncio
async def test_blank_field_is_rejected() -> None:
    with pytest.raises(ValidationError):
        await _registry().register("user_o", _input(make="   "))


@pytest.mark.asyncio
async def test_update_merges_and_stamps() -> None:
    registry = _registry()
    truck = await registry.register("user_o", _input())

    updated = await registry.update(truck.id, TruckUpdate(status=TruckStatus.MAINTENANCE, license_plate="xyz 9"))

    assert updated.status == TruckStatus.MAINTENANCE
    assert updated.license_plate == "XYZ 9"
    assert updated.make == "Volvo"
    assert updated.updated_at == _NOW
    assert await registry.by_id(truck.id) == updated


@pytest.mark.asyncio
async def test_update_validates_merged_year() -> None:
    registry = _registry()
    truck = await registry.register("user_o", _input())

    with pytest.raises(ValidationError):
        await registry.update(truck.id, TruckUpdate(year=1800))
    assert (await registry.by_id(truck.id)) == truck


@pytest.mark.asyncio
async def test_update_and_delete_missing() -> None:
    registry = _registry()
    with pytest.raises(NotFoundError):
        await registry.update("truck_missing", TruckUpdate(make="x"))
    assert not await registry.delete("truck_missing")


@pytest.mark.asyncio
async def test_delete() -> None:
    registry = _registry()
    truck = await registry.register("user_o", _input())

    assert await registry.delete(truck.id)
    assert await registry.by_id(truck.id) is None
