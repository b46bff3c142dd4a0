"""Fleet service: the operations the API boundary calls.

Usage::

    async with FleetService(StoreConfig.from_env()) as service:
        owner = await service.register_account("o@example.com", "s3cretpass", "Olive", "owner")
        caller = Caller(account_id=owner.id, role=owner.role)
        code = await service.generate_fleet_code(caller)

The caller identity and role come from the external auth collaborator and
are trusted as given; this layer only authorizes by role.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from fleetstore._backend import CollectionBackend, JsonFileBackend
from fleetstore.codes import is_well_formed_code, normalize_fleet_code
from fleetstore.config import StoreConfig
from fleetstore.exceptions import ConflictError, ForbiddenRoleError, NotFoundError, ValidationError
from fleetstore.lifecycle import RoleChangeOrchestrator
from fleetstore.models._base import FleetBaseModel, utcnow
from fleetstore.models.account import AccountUpdate, AccountView, NewAccount, Role
from fleetstore.models.checklist import Checklist, ChecklistCompletion, ChecklistItem, DriverChecklist, NewChecklistItem
from fleetstore.models.fleet import FleetCode, FleetMembership, Truck, TruckInput, TruckUpdate
from fleetstore.registries.accounts import AccountDirectory
from fleetstore.registries.checklists import ChecklistRegistry
from fleetstore.registries.fleet_codes import FleetCodeRegistry
from fleetstore.registries.memberships import FleetMembershipRegistry
from fleetstore.registries.trucks import TruckRegistry
from fleetstore.store import RecordStore, generate_id

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=FleetBaseModel)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True, slots=True)
class Caller:
    """Authenticated identity supplied by the auth collaborator."""

    account_id: str
    role: Role


def _parse(model: type[M], data: M | Mapping[str, Any]) -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid {field or 'input'}: {first.get('msg', exc)}", field=field) from exc


def _parse_role(value: Role | str | None, message: str) -> Role:
    try:
        return Role(value)
    except ValueError as exc:
        raise ValidationError(message, field="role") from exc


def _require_email(email: str) -> str:
    cleaned = email.strip()
    if not _EMAIL_PATTERN.match(cleaned):
        raise ValidationError("Invalid email format", field="email")
    return cleaned


def _require_owner(caller: Caller, action: str) -> None:
    if caller.role != Role.OWNER:
        raise ForbiddenRoleError(f"Only truck owners can {action}", role=str(caller.role))


def _require_driver(caller: Caller, action: str) -> None:
    if caller.role != Role.DRIVER:
        raise ForbiddenRoleError(f"Only drivers can {action}", role=str(caller.role))


class FleetService:
    """Facade over the registries with role checks and business rules.

    Business rules enforced here rather than in the registries:

    * an owner holds at most one active fleet code;
    * a driver belongs to at most one fleet.

    Both checks and the write that follows run under a service lock so
    two concurrent requests cannot both pass the check.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        backend: CollectionBackend | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config or StoreConfig()
        self.store = RecordStore(
            backend
            if backend is not None
            else JsonFileBackend(self._config.data_dir, indent=self._config.persist_indent)
        )
        self.accounts = AccountDirectory(self.store, self._config)
        self.fleet_codes = FleetCodeRegistry(
            self.store,
            ttl=timedelta(days=self._config.code_ttl_days),
            code_length=self._config.code_length,
            max_attempts=self._config.code_max_attempts,
            clock=clock,
        )
        self.memberships = FleetMembershipRegistry(self.store, clock=clock)
        self.trucks = TruckRegistry(self.store, clock=clock)
        self.checklists = ChecklistRegistry(self.store, clock=clock)
        self.role_changes = RoleChangeOrchestrator(self.store, self.accounts, self.fleet_codes, self.memberships)
        self._clock = clock
        self._code_lock = asyncio.Lock()
        self._membership_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetService:
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def open(self) -> None:
        """Create missing collections and apply pending migrations."""
        await self.store.init()
        _logger.debug("Fleet store ready collections=%s", self.store.keys)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def register_account(self, email: str, password: str, name: str, role: Role | str) -> AccountView:
        name = (name or "").strip()
        if not all((email, password, name, role)):
            raise ValidationError("All fields are required")
        cleaned_email = _require_email(email)
        if len(password) < self._config.min_password_length:
            raise ValidationError(
                f"Password must be at least {self._config.min_password_length} characters",
                field="password",
            )
        parsed_role = _parse_role(role, "Invalid role")
        account = await self.accounts.create(
            NewAccount(email=cleaned_email, password=password, display_name=name, role=parsed_role)
        )
        return account.public_view()

    async def authenticate(self, email: str, password: str) -> AccountView | None:
        """Check credentials for the auth collaborator; ``None`` on mismatch."""
        account = await self.accounts.find_by_email(email)
        if account is None:
            return None
        if not await self.accounts.verify_credential(password, account.credential_hash):
            return None
        return account.public_view()

    async def get_profile(self, caller: Caller) -> AccountView:
        account = await self.accounts.find_by_id(caller.account_id)
        if account is None:
            raise NotFoundError("User not found")
        return account.public_view()

    async def update_profile(
        self,
        caller: Caller,
        *,
        name: str,
        email: str,
        role: Role | str,
        idempotency_key: str | None = None,
    ) -> AccountView:
        """Edit name/email and, if the role changed, run the role change.

        The name/email write lands first; the role change then runs as its
        own resumable sequence (see :mod:`fleetstore.lifecycle`).
        """
        name = (name or "").strip()
        if not all((name, email, role)):
            raise ValidationError("Name, email, and role are required")
        cleaned_email = _require_email(email)
        new_role = _parse_role(role, 'Invalid role. Must be "owner" or "driver"')

        current = await self.accounts.find_by_id(caller.account_id)
        if current is None:
            raise NotFoundError("User not found")

        account = await self.accounts.update(
            caller.account_id,
            AccountUpdate(display_name=name, email=cleaned_email),
        )
        if new_role != current.role:
            account = await self.role_changes.change_role(
                caller.account_id,
                new_role,
                idempotency_key=idempotency_key,
            )
        return account.public_view()

    # ------------------------------------------------------------------
    # Fleet codes
    # ------------------------------------------------------------------

    async def get_fleet_code(self, caller: Caller) -> FleetCode:
        _require_owner(caller, "view fleet codes")
        active = await self.fleet_codes.get_active(caller.account_id)
        if active is None:
            raise NotFoundError("No active fleet code found")
        return active

    async def generate_fleet_code(self, caller: Caller) -> FleetCode:
        _require_owner(caller, "generate fleet codes")
        async with self._code_lock:
            if await self.fleet_codes.get_active(caller.account_id) is not None:
                raise ConflictError(
                    "You already have an active fleet code. Please delete it before generating a new one."
                )
            return await self.fleet_codes.issue(caller.account_id)

    async def delete_fleet_code(self, caller: Caller) -> FleetCode:
        """Invalidate the owner's active code and return it as it was."""
        _require_owner(caller, "delete fleet codes")
        async with self._code_lock:
            active = await self.fleet_codes.get_active(caller.account_id)
            if active is None:
                raise NotFoundError("No active fleet code found")
            await self.fleet_codes.invalidate(active.code)
        return active

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def join_fleet(self, caller: Caller, code: str) -> FleetMembership:
        _require_driver(caller, "join fleets")
        if not code or not isinstance(code, str):
            raise ValidationError("Fleet code is required", field="code")
        normalized = normalize_fleet_code(code)
        if not is_well_formed_code(normalized, self._config.code_length):
            raise ValidationError(
                f"Fleet code must be {self._config.code_length} alphanumeric characters",
                field="code",
            )

        async with self._membership_lock:
            if await self.memberships.by_driver(caller.account_id) is not None:
                raise ConflictError("You are already a member of a fleet")

            validation = await self.fleet_codes.validate(normalized)
            if not validation.valid or validation.record is None:
                raise ValidationError(validation.error or "Invalid fleet code", field="code")
            owner_id = validation.record.owner_id

            driver = await self.accounts.find_by_id(caller.account_id)
            if driver is None:
                raise NotFoundError("User not found")

            member = await self.memberships.add(
                FleetMembership(
                    id=generate_id("member"),
                    driver_id=driver.id,
                    owner_id=owner_id,
                    driver_email=driver.email,
                    driver_name=driver.display_name,
                    joined_at=self._clock(),
                )
            )
            await self.accounts.update(driver.id, AccountUpdate(fleet_owner_id=owner_id))
        _logger.debug("Driver %s joined fleet of %s", driver.id, owner_id)
        return member

    async def list_members(self, caller: Caller) -> list[FleetMembership]:
        _require_owner(caller, "view fleet members")
        return await self.memberships.by_owner(caller.account_id)

    async def remove_member(self, caller: Caller, driver_id: str) -> None:
        _require_owner(caller, "remove fleet members")
        if not driver_id:
            raise ValidationError("Driver ID is required", field="driverId")
        async with self._membership_lock:
            if not await self.memberships.remove(driver_id, caller.account_id):
                raise NotFoundError("Fleet member not found")
            driver = await self.accounts.find_by_id(driver_id)
            if driver is not None and driver.fleet_owner_id == caller.account_id:
                await self.accounts.update(driver_id, AccountUpdate(fleet_owner_id=None))

    # ------------------------------------------------------------------
    # Trucks
    # ------------------------------------------------------------------

    async def list_trucks(self, caller: Caller) -> list[Truck]:
        _require_owner(caller, "view trucks")
        return await self.trucks.by_owner(caller.account_id)

    async def register_truck(self, caller: Caller, data: TruckInput | Mapping[str, Any]) -> Truck:
        _require_owner(caller, "register trucks")
        return await self.trucks.register(caller.account_id, _parse(TruckInput, data))

    async def get_truck(self, caller: Caller, truck_id: str) -> Truck:
        _require_owner(caller, "view trucks")
        truck = await self.trucks.by_id(truck_id)
        if truck is None or truck.owner_id != caller.account_id:
            raise NotFoundError("Truck not found")
        return truck

    async def update_truck(
        self,
        caller: Caller,
        truck_id: str,
        changes: TruckUpdate | Mapping[str, Any],
    ) -> Truck:
        await self.get_truck(caller, truck_id)
        return await self.trucks.update(truck_id, _parse(TruckUpdate, changes))

    async def delete_truck(self, caller: Caller, truck_id: str) -> None:
        await self.get_truck(caller, truck_id)
        await self.trucks.delete(truck_id)

    # ------------------------------------------------------------------
    # Checklists
    # ------------------------------------------------------------------

    async def list_checklists(self, caller: Caller) -> list[Checklist] | list[DriverChecklist]:
        """Owners get their own checklists; drivers get their fleet's, with progress."""
        if caller.role == Role.OWNER:
            return await self.checklists.by_owner(caller.account_id)
        return await self.driver_checklists(caller)

    async def driver_checklists(self, caller: Caller) -> list[DriverChecklist]:
        _require_driver(caller, "view assigned checklists")
        owner_id = await self._fleet_owner_of(caller)
        views: list[DriverChecklist] = []
        for checklist in await self.checklists.by_owner(owner_id):
            views.append(
                DriverChecklist(
                    checklist=checklist,
                    completions=await self.checklists.status_for(checklist.id, caller.account_id),
                    progress=await self.checklists.progress(checklist, caller.account_id),
                )
            )
        return views

    async def create_checklist(
        self,
        caller: Caller,
        title: str,
        items: Sequence[NewChecklistItem | Mapping[str, Any]] | None,
    ) -> Checklist:
        _require_owner(caller, "create checklists")
        if not title or items is None or isinstance(items, (str, Mapping)):
            raise ValidationError("Title and items array are required")
        parsed = [_parse(NewChecklistItem, item) for item in items]
        return await self.checklists.create(caller.account_id, title, parsed)

    async def update_checklist(
        self,
        caller: Caller,
        checklist_id: str,
        *,
        title: str | None = None,
        items: Sequence[ChecklistItem | NewChecklistItem | Mapping[str, Any]] | None = None,
    ) -> Checklist:
        _require_owner(caller, "update checklists")
        await self._owned_checklist(caller, checklist_id)
        parsed: list[ChecklistItem | NewChecklistItem] | None = None
        if items is not None:
            parsed = []
            for item in items:
                if isinstance(item, (ChecklistItem, NewChecklistItem)):
                    parsed.append(item)
                elif isinstance(item, Mapping) and item.get("id"):
                    parsed.append(_parse(ChecklistItem, {"order": len(parsed), **item}))
                else:
                    parsed.append(_parse(NewChecklistItem, item))
        return await self.checklists.update(checklist_id, title=title, items=parsed)

    async def delete_checklist(self, caller: Caller, checklist_id: str) -> None:
        _require_owner(caller, "delete checklists")
        await self._owned_checklist(caller, checklist_id)
        await self.checklists.delete(checklist_id)

    async def set_completion(
        self,
        caller: Caller,
        checklist_id: str,
        item_id: str,
        completed: bool,
    ) -> ChecklistCompletion:
        _require_driver(caller, "update completion status")
        if not checklist_id or not item_id or not isinstance(completed, bool):
            raise ValidationError("checklistId, itemId, and completed status are required")
        owner_id = await self._fleet_owner_of(caller)
        checklist = await self.checklists.by_id(checklist_id)
        if checklist is None or checklist.owner_id != owner_id:
            raise NotFoundError("Checklist not found")
        if all(item.id != item_id for item in checklist.items):
            raise NotFoundError("Checklist item not found")
        return await self.checklists.set_completion(checklist_id, item_id, caller.account_id, completed)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fleet_owner_of(self, caller: Caller) -> str:
        account = await self.accounts.find_by_id(caller.account_id)
        if account is None or not account.fleet_owner_id:
            raise ForbiddenRoleError(
                "You must be part of a fleet to view checklists",
                role=str(caller.role),
            )
        return account.fleet_owner_id

    async def _owned_checklist(self, caller: Caller, checklist_id: str) -> Checklist:
        if not checklist_id:
            raise ValidationError("Checklist ID is required", field="id")
        checklist = await self.checklists.by_id(checklist_id)
        if checklist is None or checklist.owner_id != caller.account_id:
            raise NotFoundError("Checklist not found")
        return checklist
