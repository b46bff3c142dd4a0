"""Account directory: users, credentials and field merges."""

from __future__ import annotations

import asyncio
import functools
import logging

from fleetstore._crypto.hashing import hash_credential, verify_credential
from fleetstore._redact import redact_for_log
from fleetstore.config import StoreConfig
from fleetstore.exceptions import ConflictError, NotFoundError
from fleetstore.models._base import utcnow
from fleetstore.models.account import Account, AccountUpdate, NewAccount
from fleetstore.store import RecordStore, generate_id

_logger = logging.getLogger(__name__)

USERS_KEY = "users"

# Required fields: an explicit None in an update means "leave unchanged".
_NON_NULLABLE = frozenset({"email", "display_name", "role"})


def _same_email(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


class AccountDirectory:
    """Stores accounts and owns credential hashing.

    Role-change side effects are not handled here; see
    :class:`fleetstore.lifecycle.RoleChangeOrchestrator`.
    """

    def __init__(self, store: RecordStore, config: StoreConfig | None = None) -> None:
        self._config = config or StoreConfig()
        self._accounts = store.collection(USERS_KEY, Account)

    async def all(self) -> list[Account]:
        return await self._accounts.load()

    async def find_by_email(self, email: str) -> Account | None:
        """Case-insensitive email lookup."""
        for account in await self._accounts.load():
            if _same_email(account.email, email):
                return account
        return None

    async def find_by_id(self, account_id: str) -> Account | None:
        for account in await self._accounts.load():
            if account.id == account_id:
                return account
        return None

    async def create(self, new: NewAccount) -> Account:
        """Create an account, storing only the credential hash.

        Raises
        ------
        ConflictError
            If an account with the same email (case-insensitive) exists.
        """
        if await self.find_by_email(new.email) is not None:
            raise ConflictError("User with this email already exists")

        # Hashed in an executor, outside the collection lock.
        credential_hash = await self._hash(new.password)

        async with self._accounts.edit() as accounts:
            if any(_same_email(existing.email, new.email) for existing in accounts):
                raise ConflictError("User with this email already exists")
            now = utcnow()
            account = Account(
                id=generate_id("user"),
                email=new.email,
                credential_hash=credential_hash,
                display_name=new.display_name,
                role=new.role,
                created_at=now,
                updated_at=now,
            )
            accounts.append(account)

        _logger.debug("Created account %s", redact_for_log(account.to_record()))
        return account

    async def update(self, account_id: str, changes: AccountUpdate) -> Account:
        """Merge *changes* into the stored account.

        Only fields explicitly set on *changes* overwrite; ``updated_at`` is
        refreshed on every call.

        Raises
        ------
        NotFoundError
            If *account_id* does not exist.
        ConflictError
            If the new email belongs to another account.
        """
        fields = changes.model_dump(exclude_unset=True)
        for name in _NON_NULLABLE:
            if name in fields and fields[name] is None:
                del fields[name]
        if "email" in fields:
            fields["email"] = fields["email"].strip()
        if "display_name" in fields:
            fields["display_name"] = fields["display_name"].strip()

        async with self._accounts.edit() as accounts:
            index = next((i for i, a in enumerate(accounts) if a.id == account_id), None)
            if index is None:
                raise NotFoundError(f"Account {account_id} not found")
            if "email" in fields and any(
                _same_email(other.email, fields["email"]) and other.id != account_id for other in accounts
            ):
                raise ConflictError("Email is already in use by another account")

            updated = accounts[index].model_copy(update={**fields, "updated_at": utcnow()})
            accounts[index] = updated

        _logger.debug("Updated account %s fields=%s", account_id, sorted(fields))
        return updated

    async def delete(self, account_id: str) -> bool:
        """Remove an account record; returns whether one was found."""
        async with self._accounts.edit() as accounts:
            remaining = [a for a in accounts if a.id != account_id]
            found = len(remaining) != len(accounts)
            accounts[:] = remaining
        return found

    async def verify_credential(self, plain: str, credential_hash: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, verify_credential, plain, credential_hash)

    async def _hash(self, plain: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            functools.partial(
                hash_credential,
                plain,
                n=self._config.scrypt_n,
                r=self._config.scrypt_r,
                p=self._config.scrypt_p,
            ),
        )
