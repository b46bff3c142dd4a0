"""Generic record store.

A *collection* is the full set of records of one entity type and is the
unit of load and save. Each collection is held in memory after its first
load, guarded by its own :class:`asyncio.Lock`, and flushed wholesale to
the backend on every write.

Persisted layout::

    {"schemaVersion": 1, "records": [ {...}, {...} ]}

A bare JSON list is accepted as schema version ``0`` (the layout written
before versioning) and upgraded on first load.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import secrets
import time
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import ValidationError as PydanticValidationError

from fleetstore._backend import CollectionBackend
from fleetstore._redact import redact_for_log
from fleetstore.exceptions import InternalError
from fleetstore.models._base import FleetBaseModel

_logger = logging.getLogger(__name__)

T = TypeVar("T", bound=FleetBaseModel)

#: Schema version written for every collection unless a registry asks
#: for a newer one.
CURRENT_SCHEMA_VERSION = 1

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_ID_SUFFIX_LENGTH = 9

Migration = Callable[[list[dict[str, Any]]], list[dict[str, Any]]]


def generate_id(prefix: str) -> str:
    """Return ``<prefix>_<epoch ms>_<9 random base36 chars>``.

    Unique in practice; not monotonic under clock skew, so never sort by it.
    """
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _envelope(version: int, records: list[dict[str, Any]]) -> dict[str, Any]:
    return {"schemaVersion": version, "records": records}


class Collection(Generic[T]):
    """A typed, lock-guarded collection.

    Use :meth:`edit` for any read-modify-write so the whole sequence runs
    under the collection lock::

        async with collection.edit() as records:
            records.append(new_record)
    """

    def __init__(
        self,
        store: RecordStore,
        key: str,
        model: type[T],
        *,
        schema_version: int = CURRENT_SCHEMA_VERSION,
    ) -> None:
        self._store = store
        self.key = key
        self.model = model
        self.schema_version = schema_version
        self.lock = asyncio.Lock()
        self._records: list[T] | None = None

    async def load(self) -> list[T]:
        """Return every record (empty list if the collection was never written)."""
        async with self.lock:
            return list(await self._load_unlocked())

    async def save(self, records: Sequence[T]) -> None:
        """Replace the entire collection with *records*."""
        async with self.lock:
            await self._save_unlocked(records)

    @contextlib.asynccontextmanager
    async def edit(self) -> AsyncIterator[list[T]]:
        """Hold the lock across load-compute-save.

        The yielded list is written back when the block exits cleanly and
        discarded if it raises.
        """
        async with self.lock:
            working = list(await self._load_unlocked())
            yield working
            await self._save_unlocked(working)

    def invalidate_cache(self) -> None:
        """Drop the in-memory copy so the next load re-reads the backend."""
        self._records = None

    async def _load_unlocked(self) -> list[T]:
        if self._records is not None:
            return self._records

        document = await self._store.backend.read(self.key)
        if document is None:
            self._records = []
            return self._records

        version, raw_records = self._unwrap(document)
        if version != self.schema_version:
            raw_records = self._store.migrate(self.key, version, self.schema_version, raw_records)
            await self._store.backend.write(self.key, _envelope(self.schema_version, raw_records))
            _logger.warning(
                "Upgraded collection %s from schema %d to %d",
                self.key,
                version,
                self.schema_version,
            )

        records: list[T] = []
        for raw in raw_records:
            try:
                records.append(self.model.model_validate(raw))
            except PydanticValidationError as exc:
                _logger.warning("Invalid record in %s: %s", self.key, redact_for_log(raw))
                raise InternalError(
                    f"Collection {self.key!r} holds an invalid {self.model.__name__} record",
                    collection=self.key,
                ) from exc
        self._records = records
        _logger.debug("Loaded collection %s records=%d", self.key, len(records))
        return self._records

    async def _save_unlocked(self, records: Sequence[T]) -> None:
        snapshot = list(records)
        payload = [record.to_record() for record in snapshot]
        await self._store.backend.write(self.key, _envelope(self.schema_version, payload))
        self._records = snapshot
        _logger.debug("Saved collection %s records=%d", self.key, len(snapshot))

    def _unwrap(self, document: Any) -> tuple[int, list[dict[str, Any]]]:
        if isinstance(document, list):
            return 0, document
        if isinstance(document, dict) and isinstance(document.get("records"), list):
            version = document.get("schemaVersion", 0)
            if not isinstance(version, int):
                raise InternalError(f"Collection {self.key!r} has a non-integer schemaVersion", collection=self.key)
            return version, document["records"]
        raise InternalError(f"Collection {self.key!r} has an unrecognised layout", collection=self.key)


class RecordStore:
    """Owns the backend and every registered collection.

    ``collection()`` returns the same :class:`Collection` instance for a
    key on every call, so all registries share one lock and one cache per
    collection.
    """

    def __init__(self, backend: CollectionBackend) -> None:
        self.backend = backend
        self._collections: dict[str, Collection[Any]] = {}
        self._migrations: dict[tuple[str, int], Migration] = {}

    def collection(
        self,
        key: str,
        model: type[T],
        *,
        schema_version: int = CURRENT_SCHEMA_VERSION,
    ) -> Collection[T]:
        existing = self._collections.get(key)
        if existing is not None:
            if existing.model is not model:
                raise ValueError(f"Collection {key!r} already registered for {existing.model.__name__}")
            return existing
        created: Collection[T] = Collection(self, key, model, schema_version=schema_version)
        self._collections[key] = created
        return created

    @property
    def keys(self) -> list[str]:
        return sorted(self._collections)

    def register_migration(self, key: str, from_version: int, migration: Migration) -> None:
        """Register the upgrade of *key* records from *from_version* to ``from_version + 1``."""
        self._migrations[(key, from_version)] = migration

    def migrate(
        self,
        key: str,
        from_version: int,
        to_version: int,
        records: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Run the registered migrations for *key* in order.

        Version 0 (bare list) to 1 needs no record changes unless a
        migration is registered for it.
        """
        if from_version > to_version:
            raise InternalError(
                f"Collection {key!r} has schema {from_version}, newer than supported {to_version}",
                collection=key,
            )
        version = from_version
        while version < to_version:
            migration = self._migrations.get((key, version))
            if migration is None:
                if version != 0:
                    raise InternalError(
                        f"No migration for collection {key!r} from schema {version}",
                        collection=key,
                    )
            else:
                records = migration(records)
            version += 1
        return records

    async def init(self) -> None:
        """Create every registered collection that has never been written.

        Existing collections are loaded, which also applies pending
        migrations.
        """
        for key in self.keys:
            coll = self._collections[key]
            async with coll.lock:
                if await self.backend.read(key) is None:
                    await coll._save_unlocked([])
                    _logger.debug("Initialised empty collection %s", key)
                else:
                    await coll._load_unlocked()
