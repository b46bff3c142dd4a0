"""Fleet code, membership and truck models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field, field_validator

from fleetstore.models._base import FleetBaseModel, UtcDatetime, utcnow


class FleetCode(FleetBaseModel):
    """A time-limited join code issued by an owner.

    Codes are never deleted; invalidation flips ``is_active`` and stamps
    ``deactivated_at``. Expiry is evaluated at read time against
    ``expires_at``, so an expired code may still carry ``is_active=True``.
    """

    code: str
    owner_id: str
    created_at: UtcDatetime
    expires_at: UtcDatetime
    is_active: bool = True
    deactivated_at: UtcDatetime | None = None

    def deactivated(self, at: datetime | None = None) -> FleetCode:
        return self.model_copy(update={"is_active": False, "deactivated_at": at or utcnow()})


class CodeValidation(FleetBaseModel):
    """Result of :meth:`FleetCodeRegistry.validate`."""

    valid: bool
    error: str | None = None
    record: FleetCode | None = None


class MembershipStatus(StrEnum):
    ACTIVE = "active"
    REMOVED = "removed"


class FleetMembership(FleetBaseModel):
    """Link between one driver and one owner's fleet.

    Lifecycle is ``ACTIVE -> REMOVED`` only; ``removed_at`` is set on the
    transition and the record is kept for history.
    """

    id: str
    driver_id: str
    owner_id: str
    driver_email: str = ""
    driver_name: str = ""
    joined_at: UtcDatetime = Field(default_factory=utcnow)
    status: MembershipStatus = MembershipStatus.ACTIVE
    removed_at: UtcDatetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE

    def removed(self, at: datetime | None = None) -> FleetMembership:
        return self.model_copy(update={"status": MembershipStatus.REMOVED, "removed_at": at or utcnow()})


class TruckStatus(StrEnum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class Truck(FleetBaseModel):
    """A vehicle registered by an owner."""

    id: str
    owner_id: str
    make: str
    model: str
    year: int
    vin: str
    license_plate: str
    registered_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime | None = None
    status: TruckStatus = TruckStatus.ACTIVE


class TruckInput(FleetBaseModel):
    """Input for :meth:`TruckRegistry.register`.

    Text fields are trimmed; VIN and plate are upper-cased.
    """

    make: str
    model: str
    year: int
    vin: str
    license_plate: str
    status: TruckStatus = TruckStatus.ACTIVE

    @field_validator("make", "model")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("vin", "license_plate")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class TruckUpdate(FleetBaseModel):
    """Partial truck update; unset fields keep their stored value."""

    make: str | None = None
    model: str | None = None
    year: int | None = None
    vin: str | None = None
    license_plate: str | None = None
    status: TruckStatus | None = None

    @field_validator("make", "model")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return value.strip() if value is not None else value

    @field_validator("vin", "license_plate")
    @classmethod
    def _upper(cls, value: str | None) -> str | None:
        return value.strip().upper() if value is not None else value
