"""Account models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field, field_validator

from fleetstore.models._base import FleetBaseModel, UtcDatetime, utcnow


class Role(StrEnum):
    OWNER = "owner"
    DRIVER = "driver"


class Account(FleetBaseModel):
    """A registered user.

    ``fleet_owner_id`` is only set on a driver that has joined a fleet.
    """

    id: str
    email: str
    credential_hash: str
    """scrypt hash of the password; see :mod:`fleetstore._crypto.hashing`."""
    display_name: str
    role: Role
    fleet_owner_id: str | None = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    def public_view(self) -> AccountView:
        """Return the account without its credential hash."""
        return AccountView.model_validate(self.model_dump(exclude={"credential_hash"}))


class AccountView(FleetBaseModel):
    """Account as handed back across the API boundary."""

    id: str
    email: str
    display_name: str
    role: Role
    fleet_owner_id: str | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class NewAccount(FleetBaseModel):
    """Input for :meth:`AccountDirectory.create`."""

    email: str
    password: str = Field(repr=False)
    display_name: str
    role: Role

    @field_validator("email", "display_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class AccountUpdate(FleetBaseModel):
    """Partial account update.

    Only fields explicitly set are merged; setting ``fleet_owner_id=None``
    clears the driver's fleet pointer.
    """

    email: str | None = None
    display_name: str | None = None
    role: Role | None = None
    fleet_owner_id: str | None = None
