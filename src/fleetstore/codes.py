"""Fleet join code generation and expiry arithmetic."""

from __future__ import annotations

import re
import secrets
import string
from collections.abc import Collection
from datetime import datetime, timedelta

from fleetstore.exceptions import ExhaustedRetriesError
from fleetstore.models._base import ensure_utc, utcnow

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
CODE_TTL = timedelta(days=7)
DEFAULT_MAX_ATTEMPTS = 10

_CODE_FORMAT = re.compile(r"^[A-Za-z0-9]+$")


def generate_fleet_code(length: int = CODE_LENGTH) -> str:
    """Return *length* characters drawn uniformly from ``[A-Z0-9]``."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def calculate_expiration_date(from_date: datetime | None = None, *, ttl: timedelta = CODE_TTL) -> datetime:
    """Return *from_date* plus the code lifetime (a pure offset, 7 days by default)."""
    start = ensure_utc(from_date) if from_date is not None else utcnow()
    return start + ttl


def is_code_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """Whether a code expiring at *expires_at* has expired.

    Strict comparison: a code whose expiry equals *now* is still valid.
    """
    current = ensure_utc(now) if now is not None else utcnow()
    return current > ensure_utc(expires_at)


def generate_unique_fleet_code(
    existing_codes: Collection[str],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    length: int = CODE_LENGTH,
) -> str:
    """Generate a code not present in *existing_codes*.

    Raises
    ------
    ExhaustedRetriesError
        If every one of *max_attempts* candidates collided. With
        ``max_attempts <= 0`` this is always raised.
    """
    existing = existing_codes if isinstance(existing_codes, (set, frozenset)) else set(existing_codes)
    for _ in range(max_attempts):
        code = generate_fleet_code(length)
        if code not in existing:
            return code
    raise ExhaustedRetriesError(
        "Unable to generate unique fleet code after maximum attempts",
        attempts=max(max_attempts, 0),
    )


def normalize_fleet_code(value: str) -> str:
    """Trim and upper-case user input before lookup."""
    return value.strip().upper()


def is_well_formed_code(value: str, length: int = CODE_LENGTH) -> bool:
    """Whether *value* is exactly *length* alphanumeric characters."""
    return len(value) == length and bool(_CODE_FORMAT.match(value))
