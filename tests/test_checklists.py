from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fleetstore._backend import MemoryBackend
from fleetstore.exceptions import NotFoundError, ValidationError
from fleetstore.models.checklist import ChecklistItem, NewChecklistItem
from fleetstore.registries.checklists import ChecklistRegistry, progress_percent
from fleetstore.store import RecordStore

_NOW = datetime(2024, 5, 1, 8, 0, tzinfo=UTC)


def _registry() -> ChecklistRegistry:
    return ChecklistRegistry(RecordStore(MemoryBackend()), clock=lambda: _NOW)


def _items(*descriptions: str) -> list[NewChecklistItem]:
    return [NewChecklistItem(description=d) for d in descriptions]


@pytest.mark.asyncio
async def test_create_assigns_ids_and_default_order() -> None:
    registry = _registry()

    checklist = await registry.create("user_o", " Pre-trip ", _items("Tires", "Lights", "Brakes"))

    assert checklist.id.startswith("checklist_")
    assert checklist.title == "Pre-trip"
    assert [i.order for i in checklist.items] == [0, 1, 2]
    assert len({i.id for i in checklist.items}) == 3
    assert all(i.id.startswith("item_") for i in checklist.items)
    assert checklist.created_at == checklist.updated_at == _NOW


@pytest.mark.asyncio
async def test_create_keeps_explicit_order() -> None:
    checklist = await _registry().create("user_o", "T", [NewChecklistItem(description="a", order=5)])
    assert checklist.items[0].order == 5


@pytest.mark.asyncio
async def test_empty_item_list_is_allowed() -> None:
    checklist = await _registry().create("user_o", "Empty", [])
    assert checklist.items == []


@pytest.mark.parametrize(
    ("title", "items"),
    [("", _items("a")), ("   ", _items("a")), ("T", None), ("T", _items("ok", "  "))],
)
@pytest.mark.asyncio
async def test_create_rejects_invalid_input(title: str, items: list[NewChecklistItem] | None) -> None:
    with pytest.raises(ValidationError):
        await _registry().create("user_o", title, items)


@pytest.mark.asyncio
async def test_update_keeps_existing_item_ids() -> None:
    registry = _registry()
    checklist = await registry.create("user_o", "T", _items("a", "b"))
    kept = checklist.items[0]

    updated = await registry.update(
        checklist.id,
        title="Renamed",
        items=[ChecklistItem(id=kept.id, description="a2", order=0), NewChecklistItem(description="c")],
    )

    assert updated.title == "Renamed"
    assert updated.items[0].id == kept.id
    assert updated.items[0].description == "a2"
    assert updated.items[1].id not in {i.id for i in checklist.items}
    assert updated.items[1].order == 1


@pytest.mark.asyncio
async def test_update_missing_checklist() -> None:
    with pytest.raises(NotFoundError):
        await _registry().update("checklist_missing", title="x")


@pytest.mark.asyncio
async def test_set_completion_upserts_in_place() -> None:
    registry = _registry()
    checklist = await registry.create("user_o", "T", _items("a"))
    item_id = checklist.items[0].id

    first = await registry.set_completion(checklist.id, item_id, "user_d", True)
    second = await registry.set_completion(checklist.id, item_id, "user_d", False)

    assert first.completed_at == _NOW
    assert second.id == first.id
    assert not second.completed
    assert second.completed_at is None
    assert len(await registry.all_completions()) == 1


@pytest.mark.asyncio
async def test_status_is_per_driver() -> None:
    registry = _registry()
    checklist = await registry.create("user_o", "T", _items("a", "b"))
    a, b = (i.id for i in checklist.items)

    await registry.set_completion(checklist.id, a, "user_d1", True)
    await registry.set_completion(checklist.id, b, "user_d2", True)

    assert await registry.status_for(checklist.id, "user_d1") == {a: True}
    assert await registry.status_for(checklist.id, "user_d2") == {b: True}
    assert await registry.status_for(checklist.id, "user_d3") == {}
    completion = await registry.get_completion(checklist.id, a, "user_d1")
    assert completion is not None
    assert completion.completed
    assert await registry.get_completion(checklist.id, a, "user_d2") is None


@pytest.mark.asyncio
async def test_progress_counts_only_current_items() -> None:
    registry = _registry()
    checklist = await registry.create("user_o", "T", _items("a", "b", "c"))
    a, b, _ = (i.id for i in checklist.items)
    await registry.set_completion(checklist.id, a, "user_d", True)
    await registry.set_completion(checklist.id, b, "user_d", True)

    assert await registry.progress(checklist, "user_d") == 67

    # Dropping an item leaves its completion orphaned but uncounted.
    trimmed = await registry.update(checklist.id, items=[checklist.items[0], checklist.items[2]])
    assert await registry.progress(trimmed, "user_d") == 50


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(0, 0, 0), (0, 4, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 3, 100)],
)
def test_progress_percent(completed: int, total: int, expected: int) -> None:
    assert progress_percent(completed, total) == expected


@pytest.mark.asyncio
async def test_delete_cascades_to_own_completions_only() -> None:
    registry = _registry()
    doomed = await registry.create("user_o", "Doomed", _items("a"))
    kept = await registry.create("user_o", "Kept", _items("b"))
    await registry.set_completion(doomed.id, doomed.items[0].id, "user_d", True)
    await registry.set_completion(kept.id, kept.items[0].id, "user_d", True)

    assert await registry.delete(doomed.id)
    assert not await registry.delete(doomed.id)

    assert await registry.by_id(doomed.id) is None
    remaining = await registry.all_completions()
    assert [c.checklist_id for c in remaining] == [kept.id]


@pytest.mark.asyncio
async def test_delete_for_driver() -> None:
    registry = _registry()
    checklist = await registry.create("user_o", "T", _items("a"))
    item_id = checklist.items[0].id
    await registry.set_completion(checklist.id, item_id, "user_d1", True)
    await registry.set_completion(checklist.id, item_id, "user_d2", True)

    assert await registry.delete_for_driver("user_d1") == 1
    assert [c.driver_id for c in await registry.all_completions()] == ["user_d2"]
    assert await registry.completions_by_driver("user_d1") == []


@pytest.mark.asyncio
async def test_by_owner() -> None:
    registry = _registry()
    mine = await registry.create("user_o1", "Mine", [])
    await registry.create("user_o2", "Theirs", [])

    assert await registry.by_owner("user_o1") == [mine]
