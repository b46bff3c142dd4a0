"""Checklist and completion models."""

from __future__ import annotations

from pydantic import Field

from fleetstore.models._base import FleetBaseModel, UtcDatetime, utcnow


class ChecklistItem(FleetBaseModel):
    id: str
    description: str
    order: int


class NewChecklistItem(FleetBaseModel):
    """Item as supplied by the owner; the registry assigns the id.

    ``order`` defaults to the item's position in the submitted list.
    """

    description: str
    order: int | None = None


class Checklist(FleetBaseModel):
    """An owner-authored checklist.

    Visible to every driver whose ``fleet_owner_id`` equals ``owner_id``.
    """

    id: str
    owner_id: str
    title: str
    items: list[ChecklistItem] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class ChecklistCompletion(FleetBaseModel):
    """One driver's state for one checklist item.

    Keyed by ``(checklist_id, item_id, driver_id)``; ``completed_at`` is
    only present while ``completed`` is true.
    """

    id: str
    checklist_id: str
    item_id: str
    driver_id: str
    completed: bool
    completed_at: UtcDatetime | None = None


class DriverChecklist(FleetBaseModel):
    """A checklist as seen by a driver, with that driver's progress."""

    checklist: Checklist
    completions: dict[str, bool] = Field(default_factory=dict)
    progress: int = 0
