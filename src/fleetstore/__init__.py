"""fleetstore - Record storage and lifecycle management for fleet operations."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetstore")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetstore._backend import CollectionBackend, JsonFileBackend, MemoryBackend
from fleetstore.codes import (
    calculate_expiration_date,
    generate_fleet_code,
    generate_unique_fleet_code,
    is_code_expired,
)
from fleetstore.config import StoreConfig
from fleetstore.exceptions import (
    ConflictError,
    ErrorKind,
    ExhaustedRetriesError,
    FleetStoreError,
    ForbiddenRoleError,
    InternalError,
    NotFoundError,
    ValidationError,
    http_status_for,
)
from fleetstore.lifecycle import RoleChangeOrchestrator
from fleetstore.models import (
    Account,
    AccountUpdate,
    AccountView,
    Checklist,
    ChecklistCompletion,
    ChecklistItem,
    CodeValidation,
    DriverChecklist,
    FleetCode,
    FleetMembership,
    MembershipStatus,
    NewAccount,
    NewChecklistItem,
    Role,
    RoleChange,
    RoleChangeState,
    Truck,
    TruckInput,
    TruckStatus,
    TruckUpdate,
)
from fleetstore.registries import (
    AccountDirectory,
    ChecklistRegistry,
    FleetCodeRegistry,
    FleetMembershipRegistry,
    TruckRegistry,
)
from fleetstore.service import Caller, FleetService
from fleetstore.store import Collection, RecordStore, generate_id

__all__ = [
    "__version__",
    "Account",
    "AccountDirectory",
    "AccountUpdate",
    "AccountView",
    "Caller",
    "Checklist",
    "ChecklistCompletion",
    "ChecklistItem",
    "ChecklistRegistry",
    "CodeValidation",
    "Collection",
    "CollectionBackend",
    "ConflictError",
    "DriverChecklist",
    "ErrorKind",
    "ExhaustedRetriesError",
    "FleetCode",
    "FleetCodeRegistry",
    "FleetMembership",
    "FleetMembershipRegistry",
    "FleetService",
    "FleetStoreError",
    "ForbiddenRoleError",
    "InternalError",
    "JsonFileBackend",
    "MembershipStatus",
    "MemoryBackend",
    "NewAccount",
    "NewChecklistItem",
    "NotFoundError",
    "RecordStore",
    "Role",
    "RoleChange",
    "RoleChangeOrchestrator",
    "RoleChangeState",
    "StoreConfig",
    "Truck",
    "TruckInput",
    "TruckRegistry",
    "TruckStatus",
    "TruckUpdate",
    "ValidationError",
    "calculate_expiration_date",
    "generate_fleet_code",
    "generate_id",
    "generate_unique_fleet_code",
    "http_status_for",
    "is_code_expired",
]
