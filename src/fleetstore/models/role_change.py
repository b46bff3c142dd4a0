"""Role-change ledger record."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from fleetstore.models._base import FleetBaseModel, UtcDatetime, utcnow
from fleetstore.models.account import Role


class RoleChangeState(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class RoleChange(FleetBaseModel):
    """Progress of one role change, keyed by its idempotency key.

    ``steps`` is the ordered plan; ``completed_steps`` grows as each
    independent write lands. A retry with the same key resumes at the
    first step not yet completed.
    """

    id: str
    account_id: str
    from_role: Role
    to_role: Role
    steps: list[str] = Field(default_factory=list)
    completed_steps: list[str] = Field(default_factory=list)
    state: RoleChangeState = RoleChangeState.PENDING
    last_error: str | None = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def pending_steps(self) -> list[str]:
        return [step for step in self.steps if step not in self.completed_steps]
