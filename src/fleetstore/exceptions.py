"""Custom exception hierarchy for fleetstore."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Error kinds shared by every registry.

    The API boundary maps these to transport statuses; see
    :func:`http_status_for`.
    """

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN_ROLE = "forbidden_role"
    VALIDATION = "validation"
    EXHAUSTED_RETRIES = "exhausted_retries"
    INTERNAL = "internal"


_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.FORBIDDEN_ROLE: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.EXHAUSTED_RETRIES: 503,
    ErrorKind.INTERNAL: 500,
}


class FleetStoreError(Exception):
    """Base exception for all fleetstore errors."""

    kind: ErrorKind = ErrorKind.INTERNAL


class NotFoundError(FleetStoreError):
    """Id, code or record absent."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(FleetStoreError):
    """Uniqueness or one-active-X violation.

    Raised for a duplicate email, an owner that already holds an active
    fleet code, or a driver that already has an active membership.
    """

    kind = ErrorKind.CONFLICT


class ExhaustedRetriesError(FleetStoreError):
    """Fleet code generation hit its collision bound.

    Transient: callers may simply try again.
    """

    kind = ErrorKind.EXHAUSTED_RETRIES

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message)


class ValidationError(FleetStoreError):
    """Malformed input caught before reaching storage."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class ForbiddenRoleError(FleetStoreError):
    """Caller's role does not permit the operation."""

    kind = ErrorKind.FORBIDDEN_ROLE

    def __init__(self, message: str, *, role: str = "") -> None:
        self.role = role
        super().__init__(message)


class InternalError(FleetStoreError):
    """Backing store I/O failure, or a role change that failed partway.

    ``step`` names the orchestration step that failed (if any) so an
    operator can tell which writes already landed.
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        collection: str = "",
        step: str = "",
        account_id: str = "",
    ) -> None:
        self.collection = collection
        self.step = step
        self.account_id = account_id
        super().__init__(message)


def http_status_for(exc: BaseException) -> int:
    """Return the transport status for *exc* (500 for anything unknown)."""
    if isinstance(exc, FleetStoreError):
        return _HTTP_STATUS.get(exc.kind, 500)
    return 500
