"""Fleet code registry: issue, validate and invalidate join codes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from fleetstore.codes import (
    CODE_LENGTH,
    CODE_TTL,
    DEFAULT_MAX_ATTEMPTS,
    calculate_expiration_date,
    generate_unique_fleet_code,
    is_code_expired,
)
from fleetstore.models._base import utcnow
from fleetstore.models.fleet import CodeValidation, FleetCode
from fleetstore.store import RecordStore

_logger = logging.getLogger(__name__)

FLEET_CODES_KEY = "fleet_codes"

CODE_NOT_FOUND = "Fleet code not found"
CODE_INACTIVE = "Fleet code is no longer active"
CODE_EXPIRED = "Fleet code has expired"


class FleetCodeRegistry:
    """Stores fleet codes.

    The one-active-code-per-owner rule is a business rule enforced by
    :class:`fleetstore.service.FleetService`, not here.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        ttl: timedelta = CODE_TTL,
        code_length: int = CODE_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._codes = store.collection(FLEET_CODES_KEY, FleetCode)
        self._ttl = ttl
        self._code_length = code_length
        self._max_attempts = max_attempts
        self._clock = clock

    async def all(self) -> list[FleetCode]:
        return await self._codes.load()

    async def get_active(self, owner_id: str) -> FleetCode | None:
        """The owner's code that is active and not yet expired, if any."""
        now = self._clock()
        for record in await self._codes.load():
            if record.owner_id == owner_id and record.is_active and not is_code_expired(record.expires_at, now):
                return record
        return None

    async def get_by_code(self, code: str) -> FleetCode | None:
        for record in await self._codes.load():
            if record.code == code:
                return record
        return None

    async def create(self, record: FleetCode) -> FleetCode:
        async with self._codes.edit() as codes:
            codes.append(record)
        _logger.debug("Created fleet code for owner=%s expires_at=%s", record.owner_id, record.expires_at)
        return record

    async def issue(self, owner_id: str) -> FleetCode:
        """Generate a unique code and store it under one lock hold.

        Raises
        ------
        ExhaustedRetriesError
            If no unique code was found within the attempt bound.
        """
        async with self._codes.edit() as codes:
            code = generate_unique_fleet_code(
                {record.code for record in codes},
                self._max_attempts,
                length=self._code_length,
            )
            created_at = self._clock()
            record = FleetCode(
                code=code,
                owner_id=owner_id,
                created_at=created_at,
                expires_at=calculate_expiration_date(created_at, ttl=self._ttl),
                is_active=True,
            )
            codes.append(record)
        _logger.debug("Issued fleet code for owner=%s expires_at=%s", owner_id, record.expires_at)
        return record

    async def invalidate(self, code: str) -> bool:
        """Deactivate *code*; returns whether it exists."""
        async with self._codes.edit() as codes:
            for index, record in enumerate(codes):
                if record.code == code:
                    if record.is_active:
                        codes[index] = record.deactivated(self._clock())
                    return True
        return False

    async def invalidate_all_for_owner(self, owner_id: str) -> int:
        """Deactivate every active code of *owner_id*; returns how many changed.

        Safe to repeat: a second call finds nothing left to deactivate.
        """
        changed = 0
        now = self._clock()
        async with self._codes.edit() as codes:
            for index, record in enumerate(codes):
                if record.owner_id == owner_id and record.is_active:
                    codes[index] = record.deactivated(now)
                    changed += 1
        if changed:
            _logger.debug("Invalidated %d fleet code(s) for owner=%s", changed, owner_id)
        return changed

    async def validate(self, code: str) -> CodeValidation:
        """Single source of truth for join eligibility.

        Checks, in order: existence, ``is_active``, expiry.
        """
        record = await self.get_by_code(code)
        if record is None:
            return CodeValidation(valid=False, error=CODE_NOT_FOUND)
        if not record.is_active:
            return CodeValidation(valid=False, error=CODE_INACTIVE)
        if is_code_expired(record.expires_at, self._clock()):
            return CodeValidation(valid=False, error=CODE_EXPIRED)
        return CodeValidation(valid=True, record=record)

    async def all_code_strings(self) -> list[str]:
        return [record.code for record in await self._codes.load()]
