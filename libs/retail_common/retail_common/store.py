"""Key-indexed record store with optimistic concurrency.

Records are addressed by ``(table, partition_key, row_key)``. Every write
assigns a fresh version tag (``etag``); ``update`` only succeeds when the
caller presents the tag it read.
"""

import copy
import threading
import uuid
from dataclasses import dataclass, field
from typing import Protocol

from .errors import ConcurrencyConflictError, EntityAlreadyExistsError, NotFoundError

ANY_ETAG = "*"


@dataclass(frozen=True)
class Record:
    """A stored row and the version tag it was read with."""

    partition_key: str
    row_key: str
    attributes: dict = field(default_factory=dict)
    etag: str = ""


def new_etag() -> str:
    return f'W/"{uuid.uuid4().hex}"'


class RecordStore(Protocol):
    """Interface shared by the in-memory and Redis record stores."""

    def get(self, table: str, partition_key: str, row_key: str) -> Record:
        """Read a record. Raises NotFoundError if absent."""
        ...

    def insert(self, table: str, partition_key: str, row_key: str, attributes: dict) -> Record:
        """Create a record. Raises EntityAlreadyExistsError if the key is taken."""
        ...

    def update(self, table: str, partition_key: str, row_key: str, attributes: dict, etag: str) -> Record:
        """Replace a record if its tag still equals ``etag`` (``*`` matches any).

        Raises NotFoundError if absent and ConcurrencyConflictError on a stale tag.
        """
        ...

    def delete(self, table: str, partition_key: str, row_key: str) -> None:
        """Remove a record. Deleting a missing record is not an error."""
        ...

    def query(self, table: str, partition_key: str) -> list[Record]:
        """All records in a partition, in no particular order."""
        ...

    def ping(self) -> bool:
        """Whether the backing store is reachable."""
        ...


class InMemoryRecordStore:
    """Thread-safe record store held in process memory.

    Suitable for tests and for running every service in one process.
    """

    def __init__(self):
        self._tables: dict[str, dict[tuple[str, str], Record]] = {}
        self._lock = threading.Lock()

    def _table(self, table: str) -> dict[tuple[str, str], Record]:
        return self._tables.setdefault(table, {})

    def get(self, table: str, partition_key: str, row_key: str) -> Record:
        with self._lock:
            record = self._table(table).get((partition_key, row_key))
        if record is None:
            raise NotFoundError(f"{partition_key} '{row_key}' not found in table '{table}'")
        return copy.deepcopy(record)

    def insert(self, table: str, partition_key: str, row_key: str, attributes: dict) -> Record:
        record = Record(partition_key, row_key, copy.deepcopy(attributes), new_etag())
        with self._lock:
            rows = self._table(table)
            if (partition_key, row_key) in rows:
                raise EntityAlreadyExistsError(f"{partition_key} '{row_key}' already exists in table '{table}'")
            rows[(partition_key, row_key)] = record
        return copy.deepcopy(record)

    def update(self, table: str, partition_key: str, row_key: str, attributes: dict, etag: str) -> Record:
        record = Record(partition_key, row_key, copy.deepcopy(attributes), new_etag())
        with self._lock:
            rows = self._table(table)
            current = rows.get((partition_key, row_key))
            if current is None:
                raise NotFoundError(f"{partition_key} '{row_key}' not found in table '{table}'")
            if etag != ANY_ETAG and current.etag != etag:
                raise ConcurrencyConflictError(
                    f"{partition_key} '{row_key}' was modified concurrently (expected {etag}, found {current.etag})"
                )
            rows[(partition_key, row_key)] = record
        return copy.deepcopy(record)

    def delete(self, table: str, partition_key: str, row_key: str) -> None:
        with self._lock:
            self._table(table).pop((partition_key, row_key), None)

    def query(self, table: str, partition_key: str) -> list[Record]:
        with self._lock:
            records = [r for (pk, _), r in self._table(table).items() if pk == partition_key]
        return copy.deepcopy(records)

    def ping(self) -> bool:
        return True
