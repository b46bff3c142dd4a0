"""Role-change orchestration.

A role change touches more than one collection and there is no
cross-collection transaction. The change is therefore modelled as an
ordered list of idempotent steps whose progress is recorded in the
``role_changes`` ledger under an idempotency key:

* driver -> owner: ``remove_membership``, then ``apply_role``
  (role = owner, ``fleet_owner_id`` cleared). Completions the driver
  recorded are left in place.
* owner -> driver: ``invalidate_codes``, then ``apply_role``
  (role = driver).

The account write always runs last, so a crash leaves the account on its
old role and a retry with the same key re-runs only the steps that did
not complete. Delivery is at-least-once, never exactly-once.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fleetstore.exceptions import FleetStoreError, InternalError, NotFoundError
from fleetstore.models._base import utcnow
from fleetstore.models.account import Account, AccountUpdate, Role
from fleetstore.models.role_change import RoleChange, RoleChangeState
from fleetstore.registries.accounts import AccountDirectory
from fleetstore.registries.fleet_codes import FleetCodeRegistry
from fleetstore.registries.memberships import FleetMembershipRegistry
from fleetstore.store import RecordStore

_logger = logging.getLogger(__name__)

ROLE_CHANGES_KEY = "role_changes"

STEP_REMOVE_MEMBERSHIP = "remove_membership"
STEP_INVALIDATE_CODES = "invalidate_codes"
STEP_APPLY_ROLE = "apply_role"


def plan_steps(from_role: Role, to_role: Role) -> list[str]:
    """Ordered steps for a change from *from_role* to *to_role*."""
    if from_role == to_role:
        return []
    if from_role == Role.DRIVER and to_role == Role.OWNER:
        return [STEP_REMOVE_MEMBERSHIP, STEP_APPLY_ROLE]
    if from_role == Role.OWNER and to_role == Role.DRIVER:
        return [STEP_INVALIDATE_CODES, STEP_APPLY_ROLE]
    raise ValueError(f"Unsupported role change {from_role} -> {to_role}")


def default_idempotency_key(account_id: str, from_role: Role, to_role: Role) -> str:
    return f"{account_id}:{from_role}->{to_role}"


class RoleChangeOrchestrator:
    """Runs role changes as resumable step sequences."""

    def __init__(
        self,
        store: RecordStore,
        accounts: AccountDirectory,
        fleet_codes: FleetCodeRegistry,
        memberships: FleetMembershipRegistry,
    ) -> None:
        self._ledger = store.collection(ROLE_CHANGES_KEY, RoleChange)
        self._accounts = accounts
        self._fleet_codes = fleet_codes
        self._memberships = memberships
        self._handlers: dict[str, Callable[[RoleChange], Awaitable[object]]] = {
            STEP_REMOVE_MEMBERSHIP: self._remove_membership,
            STEP_INVALIDATE_CODES: self._invalidate_codes,
            STEP_APPLY_ROLE: self._apply_role,
        }

    async def get(self, key: str) -> RoleChange | None:
        for record in await self._ledger.load():
            if record.id == key:
                return record
        return None

    async def change_role(
        self,
        account_id: str,
        new_role: Role,
        *,
        idempotency_key: str | None = None,
    ) -> Account:
        """Move *account_id* to *new_role*, running each side effect once.

        Raises
        ------
        NotFoundError
            If the account does not exist.
        InternalError
            If a step fails; ``step`` names it. Retrying with the same
            idempotency key resumes from that step.
        """
        new_role = Role(new_role)
        account = await self._accounts.find_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")

        key = idempotency_key or default_idempotency_key(account_id, account.role, new_role)
        record = await self.get(key)

        if record is not None and record.state == RoleChangeState.COMPLETED:
            if record.to_role == new_role and account.role == new_role:
                return account
            # Key reused for a fresh change (e.g. owner -> driver -> owner).
            record = None

        if record is None:
            if account.role == new_role:
                return account
            now = utcnow()
            record = RoleChange(
                id=key,
                account_id=account_id,
                from_role=account.role,
                to_role=new_role,
                steps=plan_steps(account.role, new_role),
                created_at=now,
                updated_at=now,
            )
            await self._put(record)
        elif record.account_id != account_id or record.to_role != new_role:
            raise InternalError(
                f"Idempotency key {key!r} belongs to a different role change",
                collection=ROLE_CHANGES_KEY,
                account_id=account_id,
            )
        else:
            _logger.debug("Resuming role change %s pending=%s", key, record.pending_steps)

        for step in record.pending_steps:
            try:
                await self._handlers[step](record)
            except Exception as exc:
                await self._record_failure(record, step, exc)
                raise InternalError(
                    f"Role change {record.from_role} -> {record.to_role} failed at step {step!r}: {exc}",
                    step=step,
                    account_id=account_id,
                ) from exc
            record = record.model_copy(
                update={"completed_steps": [*record.completed_steps, step], "updated_at": utcnow()}
            )
            await self._put(record)

        record = record.model_copy(
            update={"state": RoleChangeState.COMPLETED, "last_error": None, "updated_at": utcnow()}
        )
        await self._put(record)
        _logger.debug("Role change %s completed", key)

        updated = await self._accounts.find_by_id(account_id)
        if updated is None:
            raise InternalError(
                f"Account {account_id} vanished during role change",
                step=STEP_APPLY_ROLE,
                account_id=account_id,
            )
        return updated

    async def _put(self, record: RoleChange) -> None:
        async with self._ledger.edit() as ledger:
            for index, existing in enumerate(ledger):
                if existing.id == record.id:
                    ledger[index] = record
                    break
            else:
                ledger.append(record)

    async def _record_failure(self, record: RoleChange, step: str, exc: Exception) -> None:
        failed = record.model_copy(update={"last_error": f"{step}: {exc}", "updated_at": utcnow()})
        try:
            await self._put(failed)
        except FleetStoreError:
            _logger.warning("Could not record failure of role change %s at %s", record.id, step, exc_info=True)

    async def _remove_membership(self, record: RoleChange) -> None:
        removed = await self._memberships.remove_all_for_driver(record.account_id)
        _logger.debug("Role change %s removed %d membership(s)", record.id, removed)

    async def _invalidate_codes(self, record: RoleChange) -> None:
        await self._fleet_codes.invalidate_all_for_owner(record.account_id)

    async def _apply_role(self, record: RoleChange) -> None:
        if record.to_role == Role.OWNER:
            changes = AccountUpdate(role=Role.OWNER, fleet_owner_id=None)
        else:
            changes = AccountUpdate(role=record.to_role)
        await self._accounts.update(record.account_id, changes)
