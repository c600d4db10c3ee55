"""
Snapshot repositories.

Writers are serialized: ``update`` holds the repository lock for the whole
read-modify-write, so the scheduler always sees one consistent snapshot.
Callers that read earlier and write later use ``commit`` with the version they
read; a moved version raises ``StaleSnapshotError`` instead of silently
overwriting someone else's bookings.
"""
from __future__ import annotations
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Protocol, Tuple

from pydantic import TypeAdapter

from .domain import Snapshot

logger = logging.getLogger(__name__)

_SNAPSHOT = TypeAdapter(Snapshot)


class StaleSnapshotError(RuntimeError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"Snapshot changed since it was read (expected v{expected}, found v{actual})")
        self.expected = expected
        self.actual = actual


def dumps_snapshot(snapshot: Snapshot) -> str:
    return _SNAPSHOT.dump_json(snapshot, indent=2).decode("utf-8")


def loads_snapshot(data: str | bytes) -> Snapshot:
    return _SNAPSHOT.validate_json(data)


class Repository(Protocol):
    @property
    def version(self) -> int: ...
    def load(self) -> Snapshot: ...
    def update(self, fn: Callable[[Snapshot], Snapshot]) -> Snapshot: ...
    def commit(self, snapshot: Snapshot, expected_version: int) -> int: ...


class InMemoryRepository:
    def __init__(self, snapshot: Snapshot | None = None):
        self._lock = threading.RLock()
        self._snapshot = snapshot if snapshot is not None else Snapshot()
        self._version = 0

    @property
    def version(self) -> int:
        with self._lock:
            return self._read()[1]

    def _read(self) -> Tuple[Snapshot, int]:
        return self._snapshot, self._version

    def _write(self, snapshot: Snapshot, version: int) -> None:
        self._snapshot, self._version = snapshot, version

    def load(self) -> Snapshot:
        with self._lock:
            return self._read()[0]

    def update(self, fn: Callable[[Snapshot], Snapshot]) -> Snapshot:
        with self._lock:
            current, version = self._read()
            new = fn(current)
            if new != current:
                self._write(new, version + 1)
            return new

    def commit(self, snapshot: Snapshot, expected_version: int) -> int:
        with self._lock:
            _, version = self._read()
            if expected_version != version:
                raise StaleSnapshotError(expected_version, version)
            self._write(snapshot, version + 1)
            return version + 1


@dataclass(frozen=True)
class _StoredState:
    version: int
    snapshot: Snapshot


_STORED = TypeAdapter(_StoredState)

# Repositories opened on the same file in one process share a lock.
_PATH_LOCKS: Dict[Path, threading.RLock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


class JsonFileRepository(InMemoryRepository):
    """
    Keeps the snapshot and its version in a JSON file; every write replaces the
    file atomically. The version is read back from disk, so a second
    repository on the same file sees commits made through the first one.
    """

    def __init__(self, path: str | os.PathLike):
        super().__init__()
        self.path = Path(path)
        with _PATH_LOCKS_GUARD:
            self._lock = _PATH_LOCKS.setdefault(self.path.resolve(), threading.RLock())

    def _read(self) -> Tuple[Snapshot, int]:
        if not self.path.exists():
            return Snapshot(), 0
        stored = _STORED.validate_json(self.path.read_bytes())
        return stored.snapshot, stored.version

    def _write(self, snapshot: Snapshot, version: int) -> None:
        dirpath = self.path.parent
        dirpath.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=dirpath)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(_STORED.dump_json(_StoredState(version, snapshot), indent=2))
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        logger.debug("Wrote v%d with %d applicants to %s", version, len(snapshot.applicants), self.path)
