from __future__ import annotations

import asyncio

import pytest

from fleetstore._backend import MemoryBackend
from fleetstore._crypto.hashing import hash_credential, verify_credential
from fleetstore.config import StoreConfig
from fleetstore.exceptions import ConflictError, NotFoundError
from fleetstore.models.account import AccountUpdate, NewAccount, Role
from fleetstore.registries.accounts import USERS_KEY, AccountDirectory
from fleetstore.store import RecordStore

# Cheap scrypt cost keeps the suite fast.
_CONFIG = StoreConfig(scrypt_n=2**8)


def _directory() -> tuple[AccountDirectory, MemoryBackend]:
    backend = MemoryBackend()
    return AccountDirectory(RecordStore(backend), _CONFIG), backend


def _new(email: str = "Driver@Example.com", role: Role = Role.DRIVER) -> NewAccount:
    return NewAccount(email=email, password="correct horse", display_name="Dee Driver", role=role)


def test_hash_round_trip() -> None:
    encoded = hash_credential("s3cret-pass", n=2**8)
    assert encoded.startswith("scrypt$256$8$1$")
    assert verify_credential("s3cret-pass", encoded)
    assert not verify_credential("wrong-pass", encoded)


def test_hashes_are_salted() -> None:
    assert hash_credential("same", n=2**8) != hash_credential("same", n=2**8)


@pytest.mark.parametrize("encoded", ["", "plain", "bcrypt$1$2$3$4$5", "scrypt$x$8$1$AAAA$AAAA", "scrypt$256$8$1$!!$??"])
def test_malformed_hash_never_verifies(encoded: str) -> None:
    assert not verify_credential("anything", encoded)


@pytest.mark.asyncio
async def test_create_stores_hash_only() -> None:
    directory, backend = _directory()

    account = await directory.create(_new())

    assert account.id.startswith("user_")
    assert account.credential_hash != "correct horse"
    stored = await backend.read(USERS_KEY)
    assert "correct horse" not in str(stored)
    assert stored["records"][0]["credentialHash"] == account.credential_hash
    assert await directory.verify_credential("correct horse", account.credential_hash)


@pytest.mark.asyncio
async def test_duplicate_email_is_conflict_case_insensitive() -> None:
    directory, _ = _directory()
    await directory.create(_new("driver@example.com"))

    with pytest.raises(ConflictError):
        await directory.create(_new("DRIVER@example.COM"))


@pytest.mark.asyncio
async def test_concurrent_creates_with_same_email_yield_one_account() -> None:
    directory, _ = _directory()

    results = await asyncio.gather(
        directory.create(_new("same@example.com")),
        directory.create(_new("same@example.com")),
        return_exceptions=True,
    )

    assert sum(isinstance(r, ConflictError) for r in results) == 1
    assert len(await directory.all()) == 1


@pytest.mark.asyncio
async def test_find_by_email_ignores_case() -> None:
    directory, _ = _directory()
    created = await directory.create(_new())

    found = await directory.find_by_email("driver@EXAMPLE.com")

    assert found is not None
    assert found.id == created.id
    assert await directory.find_by_id(created.id) == created
    assert await directory.find_by_id("user_missing") is None


@pytest.mark.asyncio
async def test_update_merges_and_refreshes_updated_at() -> None:
    directory, _ = _directory()
    created = await directory.create(_new())

    joined = await directory.update(created.id, AccountUpdate(fleet_owner_id="user_owner"))
    renamed = await directory.update(created.id, AccountUpdate(display_name="  Dana  "))

    assert renamed.fleet_owner_id == "user_owner"
    assert renamed.display_name == "Dana"
    assert renamed.email == created.email
    assert renamed.credential_hash == created.credential_hash
    assert renamed.updated_at >= joined.updated_at >= created.updated_at


@pytest.mark.asyncio
async def test_update_with_explicit_none_clears_fleet_pointer() -> None:
    directory, _ = _directory()
    created = await directory.create(_new())
    await directory.update(created.id, AccountUpdate(fleet_owner_id="user_owner"))

    cleared = await directory.update(created.id, AccountUpdate(fleet_owner_id=None))

    assert cleared.fleet_owner_id is None
    assert "fleetOwnerId" not in cleared.to_record()


@pytest.mark.asyncio
async def test_update_missing_account_is_not_found() -> None:
    directory, _ = _directory()
    with pytest.raises(NotFoundError):
        await directory.update("user_missing", AccountUpdate(display_name="x"))


@pytest.mark.asyncio
async def test_update_to_taken_email_is_conflict() -> None:
    directory, _ = _directory()
    await directory.create(_new("first@example.com"))
    second = await directory.create(_new("second@example.com"))

    with pytest.raises(ConflictError):
        await directory.update(second.id, AccountUpdate(email="FIRST@example.com"))

    # Changing only the case of one's own email is fine.
    same = await directory.update(second.id, AccountUpdate(email="Second@Example.com"))
    assert same.email == "Second@Example.com"


@pytest.mark.asyncio
async def test_public_view_hides_credential_hash() -> None:
    directory, _ = _directory()
    account = await directory.create(_new(role=Role.OWNER))

    view = account.public_view()

    assert view.role == Role.OWNER
    assert "credentialHash" not in view.to_record()


@pytest.mark.asyncio
async def test_delete_account() -> None:
    directory, _ = _directory()
    account = await directory.create(_new())

    assert await directory.delete(account.id)
    assert not await directory.delete(account.id)
    assert await directory.all() == []
