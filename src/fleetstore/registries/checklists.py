"""Checklist and completion registry."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from fleetstore.exceptions import NotFoundError, ValidationError
from fleetstore.models._base import utcnow
from fleetstore.models.checklist import Checklist, ChecklistCompletion, ChecklistItem, NewChecklistItem
from fleetstore.store import RecordStore, generate_id

_logger = logging.getLogger(__name__)

CHECKLISTS_KEY = "checklists"
COMPLETIONS_KEY = "checklist_completions"


def _build_items(items: Sequence[ChecklistItem | NewChecklistItem]) -> list[ChecklistItem]:
    built: list[ChecklistItem] = []
    for index, item in enumerate(items):
        description = item.description.strip()
        if not description:
            raise ValidationError(f"Checklist item {index + 1} needs a description", field="items")
        item_id = item.id if isinstance(item, ChecklistItem) else generate_id("item")
        order = item.order if item.order is not None else index
        built.append(ChecklistItem(id=item_id, description=description, order=order))
    return built


def _require_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title and items array are required", field="title")
    return cleaned


def progress_percent(completed: int, total: int) -> int:
    """``completed / total`` as a whole percentage, halves rounded up."""
    if total <= 0:
        return 0
    return int(completed * 100 / total + 0.5)


class ChecklistRegistry:
    """Owner-authored checklists and per-driver completion state."""

    def __init__(self, store: RecordStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._checklists = store.collection(CHECKLISTS_KEY, Checklist)
        self._completions = store.collection(COMPLETIONS_KEY, ChecklistCompletion)
        self._clock = clock

    # ------------------------------------------------------------------
    # Checklists
    # ------------------------------------------------------------------

    async def all(self) -> list[Checklist]:
        return await self._checklists.load()

    async def by_owner(self, owner_id: str) -> list[Checklist]:
        return [c for c in await self._checklists.load() if c.owner_id == owner_id]

    async def by_id(self, checklist_id: str) -> Checklist | None:
        for checklist in await self._checklists.load():
            if checklist.id == checklist_id:
                return checklist
        return None

    async def create(
        self,
        owner_id: str,
        title: str,
        items: Sequence[NewChecklistItem] | None,
    ) -> Checklist:
        """Create a checklist, assigning ids to it and every item."""
        cleaned_title = _require_title(title)
        if items is None:
            raise ValidationError("Title and items array are required", field="items")
        now = self._clock()
        checklist = Checklist(
            id=generate_id("checklist"),
            owner_id=owner_id,
            title=cleaned_title,
            items=_build_items(items),
            created_at=now,
            updated_at=now,
        )
        async with self._checklists.edit() as checklists:
            checklists.append(checklist)
        _logger.debug("Created checklist %s owner=%s items=%d", checklist.id, owner_id, len(checklist.items))
        return checklist

    async def update(
        self,
        checklist_id: str,
        *,
        title: str | None = None,
        items: Sequence[ChecklistItem | NewChecklistItem] | None = None,
    ) -> Checklist:
        """Replace title and/or items and bump ``updated_at``.

        Items that already carry an id keep it; new ones get one.
        """
        changes: dict[str, object] = {"updated_at": self._clock()}
        if title is not None:
            changes["title"] = _require_title(title)
        if items is not None:
            changes["items"] = _build_items(items)

        async with self._checklists.edit() as checklists:
            index = next((i for i, c in enumerate(checklists) if c.id == checklist_id), None)
            if index is None:
                raise NotFoundError(f"Checklist {checklist_id} not found")
            updated = checklists[index].model_copy(update=changes)
            checklists[index] = updated
        return updated

    async def delete(self, checklist_id: str) -> bool:
        """Delete a checklist and purge every completion that references it.

        Both collection locks are held for the whole operation (checklists
        first, then completions).
        """
        async with self._checklists.edit() as checklists, self._completions.edit() as completions:
            remaining = [c for c in checklists if c.id != checklist_id]
            if len(remaining) == len(checklists):
                return False
            checklists[:] = remaining
            before = len(completions)
            completions[:] = [c for c in completions if c.checklist_id != checklist_id]
            purged = before - len(completions)
        _logger.debug("Deleted checklist %s purged_completions=%d", checklist_id, purged)
        return True

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    async def all_completions(self) -> list[ChecklistCompletion]:
        return await self._completions.load()

    async def completions_by_driver(self, driver_id: str) -> list[ChecklistCompletion]:
        return [c for c in await self._completions.load() if c.driver_id == driver_id]

    async def completions_for(self, checklist_id: str, driver_id: str) -> list[ChecklistCompletion]:
        return [
            c
            for c in await self._completions.load()
            if c.checklist_id == checklist_id and c.driver_id == driver_id
        ]

    async def get_completion(self, checklist_id: str, item_id: str, driver_id: str) -> ChecklistCompletion | None:
        for completion in await self.completions_for(checklist_id, driver_id):
            if completion.item_id == item_id:
                return completion
        return None

    async def set_completion(
        self,
        checklist_id: str,
        item_id: str,
        driver_id: str,
        completed: bool,
    ) -> ChecklistCompletion:
        """Upsert the completion slot for ``(checklist_id, item_id, driver_id)``.

        ``completed_at`` is stamped when *completed* is true and dropped
        otherwise. An existing slot keeps its id.
        """
        async with self._completions.edit() as completions:
            index = next(
                (
                    i
                    for i, c in enumerate(completions)
                    if c.checklist_id == checklist_id and c.item_id == item_id and c.driver_id == driver_id
                ),
                None,
            )
            record = ChecklistCompletion(
                id=completions[index].id if index is not None else generate_id("completion"),
                checklist_id=checklist_id,
                item_id=item_id,
                driver_id=driver_id,
                completed=completed,
                completed_at=self._clock() if completed else None,
            )
            if index is None:
                completions.append(record)
            else:
                completions[index] = record
        return record

    async def status_for(self, checklist_id: str, driver_id: str) -> dict[str, bool]:
        """Item id -> completed, for one driver only."""
        return {c.item_id: c.completed for c in await self.completions_for(checklist_id, driver_id)}

    async def progress(self, checklist: Checklist, driver_id: str) -> int:
        status = await self.status_for(checklist.id, driver_id)
        done = sum(1 for item in checklist.items if status.get(item.id, False))
        return progress_percent(done, len(checklist.items))

    async def delete_for_driver(self, driver_id: str) -> int:
        """Purge every completion of *driver_id*; returns how many were removed."""
        async with self._completions.edit() as completions:
            before = len(completions)
            completions[:] = [c for c in completions if c.driver_id != driver_id]
            removed = before - len(completions)
        return removed
