"""Fleet membership registry."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from fleetstore.models._base import utcnow
from fleetstore.models.fleet import FleetMembership, MembershipStatus
from fleetstore.store import RecordStore

_logger = logging.getLogger(__name__)

FLEET_MEMBERS_KEY = "fleet_members"


class FleetMembershipRegistry:
    """Active/removed links between drivers and owners.

    ``add`` does not check that the driver is free; callers check
    :meth:`by_driver` first. Queries only see active records; removed ones
    stay in the collection for history.
    """

    def __init__(self, store: RecordStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._members = store.collection(FLEET_MEMBERS_KEY, FleetMembership)
        self._clock = clock

    async def all(self) -> list[FleetMembership]:
        """Every record, removed ones included."""
        return await self._members.load()

    async def by_owner(self, owner_id: str) -> list[FleetMembership]:
        return [m for m in await self._members.load() if m.owner_id == owner_id and m.is_active]

    async def by_driver(self, driver_id: str) -> FleetMembership | None:
        for member in await self._members.load():
            if member.driver_id == driver_id and member.is_active:
                return member
        return None

    async def add(self, member: FleetMembership) -> FleetMembership:
        record = member.model_copy(update={"status": MembershipStatus.ACTIVE, "removed_at": None})
        async with self._members.edit() as members:
            members.append(record)
        _logger.debug("Driver %s joined fleet of owner %s", record.driver_id, record.owner_id)
        return record

    async def remove(self, driver_id: str, owner_id: str) -> bool:
        """Mark the driver's active membership in *owner_id*'s fleet removed."""
        async with self._members.edit() as members:
            for index, member in enumerate(members):
                if member.driver_id == driver_id and member.owner_id == owner_id and member.is_active:
                    members[index] = member.removed(self._clock())
                    _logger.debug("Driver %s removed from fleet of owner %s", driver_id, owner_id)
                    return True
        return False

    async def remove_all_for_driver(self, driver_id: str) -> int:
        """Remove every active membership of *driver_id*; returns how many changed."""
        changed = 0
        now = self._clock()
        async with self._members.edit() as members:
            for index, member in enumerate(members):
                if member.driver_id == driver_id and member.is_active:
                    members[index] = member.removed(now)
                    changed += 1
        return changed
