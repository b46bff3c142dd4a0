"""Base model and timestamp helpers for stored records.

Every persisted record inherits from :class:`FleetBaseModel` which
provides:

* ``alias_generator=to_camel`` so records are written with camelCase keys
  (``fleetOwnerId``) while Python code uses snake_case attributes.
* ``frozen=True``: an update is always a revised copy, never an in-place
  mutation of a record another caller may hold.
* :meth:`FleetBaseModel.to_record` for the JSON-ready persisted form.

Date-typed fields are declared as :data:`UtcDatetime`. On save they are
written as ISO-8601 strings; on load they are parsed back and forced to
UTC, so a stored collection round-trips without losing its dates.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
"""Annotated type for stored timestamps (ISO-8601 on disk, aware UTC in memory)."""


class FleetBaseModel(BaseModel):
    """Base for stored records and registry inputs."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-ready persisted form (camelCase keys, ISO dates).

        Optional fields that are ``None`` are omitted, matching how the
        records were laid out by earlier writers.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
