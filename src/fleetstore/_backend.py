"""Durable storage backends for collections."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from fleetstore.exceptions import InternalError

_logger = logging.getLogger(__name__)


class CollectionBackend(Protocol):
    """Structural backend interface used by the record store.

    A backend stores one JSON document per collection key. ``read``
    returns ``None`` for a collection that was never written.
    """

    async def read(self, key: str) -> Any | None:
        ...

    async def write(self, key: str, document: Any) -> None:
        ...


class JsonFileBackend:
    """One ``<key>.json`` file per collection under ``data_dir``.

    Writes go to a temporary file in the same directory and are moved into
    place with :func:`os.replace`, so a crash mid-write leaves the previous
    file intact.
    """

    def __init__(self, data_dir: Path, *, indent: int | None = 2) -> None:
        self._data_dir = Path(data_dir)
        self._indent = indent

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def _read_sync(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def _write_sync(self, key: str, document: Any) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self._data_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=self._indent, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    async def read(self, key: str) -> Any | None:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._read_sync, key)
        except (OSError, ValueError) as exc:
            raise InternalError(f"Failed to read collection {key!r}: {exc}", collection=key) from exc

    async def write(self, key: str, document: Any) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_sync, key, document)
        except (OSError, TypeError, ValueError) as exc:
            raise InternalError(f"Failed to write collection {key!r}: {exc}", collection=key) from exc
        _logger.debug("Wrote collection %s to %s", key, self.path_for(key))


class MemoryBackend:
    """Keeps serialized documents in a dict.

    Documents are stored as JSON text so that reads go through the same
    decode path as the file backend.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    async def read(self, key: str) -> Any | None:
        text = self._documents.get(key)
        if text is None:
            return None
        return json.loads(text)

    async def write(self, key: str, document: Any) -> None:
        try:
            self._documents[key] = json.dumps(document)
        except (TypeError, ValueError) as exc:
            raise InternalError(f"Failed to write collection {key!r}: {exc}", collection=key) from exc

    def keys(self) -> list[str]:
        return sorted(self._documents)

