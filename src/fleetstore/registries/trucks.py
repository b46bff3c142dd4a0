"""Truck registry."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from fleetstore.exceptions import NotFoundError, ValidationError
from fleetstore.models._base import utcnow
from fleetstore.models.fleet import Truck, TruckInput, TruckUpdate
from fleetstore.store import RecordStore, generate_id

TRUCKS_KEY = "trucks"

MIN_TRUCK_YEAR = 1900


class TruckRegistry:
    """Owner-scoped vehicle records."""

    def __init__(self, store: RecordStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._trucks = store.collection(TRUCKS_KEY, Truck)
        self._clock = clock

    def _check(self, make: str, model: str, year: int, vin: str, license_plate: str) -> None:
        if not all((make, model, vin, license_plate)):
            raise ValidationError("All fields are required: make, model, year, VIN, and license plate")
        max_year = self._clock().year + 1
        if not MIN_TRUCK_YEAR <= year <= max_year:
            raise ValidationError(
                f"Year must be a valid number between {MIN_TRUCK_YEAR} and {max_year}",
                field="year",
            )

    async def register(self, owner_id: str, data: TruckInput) -> Truck:
        self._check(data.make, data.model, data.year, data.vin, data.license_plate)
        truck = Truck(
            id=generate_id("truck"),
            owner_id=owner_id,
            make=data.make,
            model=data.model,
            year=data.year,
            vin=data.vin,
            license_plate=data.license_plate,
            registered_at=self._clock(),
            status=data.status,
        )
        async with self._trucks.edit() as trucks:
            trucks.append(truck)
        return truck

    async def by_owner(self, owner_id: str) -> list[Truck]:
        return [t for t in await self._trucks.load() if t.owner_id == owner_id]

    async def by_id(self, truck_id: str) -> Truck | None:
        for truck in await self._trucks.load():
            if truck.id == truck_id:
                return truck
        return None

    async def update(self, truck_id: str, changes: TruckUpdate) -> Truck:
        fields = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}
        async with self._trucks.edit() as trucks:
            index = next((i for i, t in enumerate(trucks) if t.id == truck_id), None)
            if index is None:
                raise NotFoundError(f"Truck {truck_id} not found")
            updated = trucks[index].model_copy(update={**fields, "updated_at": self._clock()})
            self._check(updated.make, updated.model, updated.year, updated.vin, updated.license_plate)
            trucks[index] = updated
        return updated

    async def delete(self, truck_id: str) -> bool:
        async with self._trucks.edit() as trucks:
            remaining = [t for t in trucks if t.id != truck_id]
            found = len(remaining) != len(trucks)
            trucks[:] = remaining
        return found
