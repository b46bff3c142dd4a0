"""Record models for fleetstore collections."""

from fleetstore.models._base import FleetBaseModel, UtcDatetime, ensure_utc, utcnow
from fleetstore.models.account import Account, AccountUpdate, AccountView, NewAccount, Role
from fleetstore.models.checklist import (
    Checklist,
    ChecklistCompletion,
    ChecklistItem,
    DriverChecklist,
    NewChecklistItem,
)
from fleetstore.models.fleet import (
    CodeValidation,
    FleetCode,
    FleetMembership,
    MembershipStatus,
    Truck,
    TruckInput,
    TruckStatus,
    TruckUpdate,
)
from fleetstore.models.role_change import RoleChange, RoleChangeState

__all__ = [
    "Account",
    "AccountUpdate",
    "AccountView",
    "Checklist",
    "ChecklistCompletion",
    "ChecklistItem",
    "CodeValidation",
    "DriverChecklist",
    "FleetBaseModel",
    "FleetCode",
    "FleetMembership",
    "MembershipStatus",
    "NewAccount",
    "NewChecklistItem",
    "Role",
    "RoleChange",
    "RoleChangeState",
    "Truck",
    "TruckInput",
    "TruckStatus",
    "TruckUpdate",
    "UtcDatetime",
    "ensure_utc",
    "utcnow",
]
