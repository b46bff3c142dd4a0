"""Registries: one per entity type, each built on a store collection."""

from fleetstore.registries.accounts import USERS_KEY, AccountDirectory
from fleetstore.registries.checklists import CHECKLISTS_KEY, COMPLETIONS_KEY, ChecklistRegistry
from fleetstore.registries.fleet_codes import (
    CODE_EXPIRED,
    CODE_INACTIVE,
    CODE_NOT_FOUND,
    FLEET_CODES_KEY,
    FleetCodeRegistry,
)
from fleetstore.registries.memberships import FLEET_MEMBERS_KEY, FleetMembershipRegistry
from fleetstore.registries.trucks import TRUCKS_KEY, TruckRegistry

__all__ = [
    "CHECKLISTS_KEY",
    "CODE_EXPIRED",
    "CODE_INACTIVE",
    "CODE_NOT_FOUND",
    "COMPLETIONS_KEY",
    "FLEET_CODES_KEY",
    "FLEET_MEMBERS_KEY",
    "TRUCKS_KEY",
    "USERS_KEY",
    "AccountDirectory",
    "ChecklistRegistry",
    "FleetCodeRegistry",
    "FleetMembershipRegistry",
    "TruckRegistry",
]
