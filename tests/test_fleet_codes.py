from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

import pytest

from fleetstore._backend import MemoryBackend
from fleetstore.codes import calculate_expiration_date
from fleetstore.models.fleet import FleetCode
from fleetstore.registries.fleet_codes import (
    CODE_EXPIRED,
    CODE_INACTIVE,
    CODE_NOT_FOUND,
    FleetCodeRegistry,
)
from fleetstore.store import RecordStore

_NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class _Clock:
    def __init__(self, now: datetime = _NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _registry(clock: _Clock | None = None) -> FleetCodeRegistry:
    return FleetCodeRegistry(RecordStore(MemoryBackend()), clock=clock or _Clock())


def _fresh(code: str = "AB12CD34", owner_id: str = "user_owner", **overrides: object) -> FleetCode:
    values: dict[str, object] = {
        "code": code,
        "owner_id": owner_id,
        "created_at": _NOW,
        "expires_at": calculate_expiration_date(_NOW),
        "is_active": True,
    }
    values.update(overrides)
    return FleetCode(**values)


class TestValidate:
    @pytest.mark.asyncio
    async def test_fresh_code_is_valid(self) -> None:
        registry = _registry()
        await registry.create(_fresh())

        result = await registry.validate("AB12CD34")

        assert result.valid
        assert result.error is None
        assert result.record is not None
        assert result.record.owner_id == "user_owner"

    @pytest.mark.asyncio
    async def test_inactive_code(self) -> None:
        registry = _registry()
        await registry.create(_fresh(is_active=False))

        result = await registry.validate("AB12CD34")

        assert not result.valid
        assert result.error == CODE_INACTIVE == "Fleet code is no longer active"

    @pytest.mark.asyncio
    async def test_expired_code(self) -> None:
        registry = _registry()
        await registry.create(_fresh(expires_at=_NOW - timedelta(seconds=1)))

        result = await registry.validate("AB12CD34")

        assert not result.valid
        assert result.error == CODE_EXPIRED == "Fleet code has expired"

    @pytest.mark.asyncio
    async def test_unknown_code(self) -> None:
        result = await _registry().validate("ZZZZZZZZ")

        assert not result.valid
        assert result.error == CODE_NOT_FOUND == "Fleet code not found"

    @pytest.mark.asyncio
    async def test_inactive_wins_over_expired(self) -> None:
        registry = _registry()
        await registry.create(_fresh(is_active=False, expires_at=_NOW - timedelta(days=1)))

        assert (await registry.validate("AB12CD34")).error == CODE_INACTIVE

    @pytest.mark.asyncio
    async def test_code_valid_at_exact_expiry_instant(self) -> None:
        registry = _registry()
        await registry.create(_fresh(expires_at=_NOW))

        assert (await registry.validate("AB12CD34")).valid


@pytest.mark.asyncio
async def test_get_active_evaluates_expiry_at_read_time() -> None:
    clock = _Clock()
    registry = _registry(clock)
    await registry.create(_fresh())

    assert await registry.get_active("user_owner") is not None

    clock.now = _NOW + timedelta(days=8)
    assert await registry.get_active("user_owner") is None
    # Expired but never swept: the stored flag is untouched.
    stored = await registry.get_by_code("AB12CD34")
    assert stored is not None
    assert stored.is_active


@pytest.mark.asyncio
async def test_get_active_is_owner_scoped() -> None:
    registry = _registry()
    await registry.create(_fresh("AAAAAAAA", owner_id="user_a"))
    await registry.create(_fresh("BBBBBBBB", owner_id="user_b"))

    active = await registry.get_active("user_b")

    assert active is not None
    assert active.code == "BBBBBBBB"
    assert await registry.get_active("user_c") is None


@pytest.mark.asyncio
async def test_invalidate_soft_deletes() -> None:
    registry = _registry()
    await registry.create(_fresh())

    assert await registry.invalidate("AB12CD34")
    assert not await registry.invalidate("NOPE0000")

    stored = await registry.get_by_code("AB12CD34")
    assert stored is not None
    assert not stored.is_active
    assert stored.deactivated_at == _NOW
    assert await registry.all_code_strings() == ["AB12CD34"]


@pytest.mark.asyncio
async def test_invalidate_all_for_owner_is_repeatable() -> None:
    registry = _registry()
    await registry.create(_fresh("AAAAAAAA"))
    await registry.create(_fresh("BBBBBBBB"))
    await registry.create(_fresh("CCCCCCCC", owner_id="user_other"))

    assert await registry.invalidate_all_for_owner("user_owner") == 2
    assert await registry.invalidate_all_for_owner("user_owner") == 0

    active = {c.code for c in await registry.all() if c.is_active}
    assert active == {"CCCCCCCC"}


@pytest.mark.asyncio
async def test_issue_creates_seven_day_code() -> None:
    registry = _registry()

    issued = await registry.issue("user_owner")

    assert re.match(r"^[A-Z0-9]{8}$", issued.code)
    assert issued.created_at == _NOW
    assert issued.expires_at == datetime(2024, 1, 8, 12, 0, 0, tzinfo=UTC)
    assert await registry.get_active("user_owner") == issued


@pytest.mark.asyncio
async def test_issue_never_reuses_existing_codes() -> None:
    registry = _registry()
    for _ in range(20):
        await registry.issue("user_owner")

    strings = await registry.all_code_strings()
    assert len(set(strings)) == len(strings) == 20
