"""Redis-backed record store shared between service processes.

Each record is a JSON document ``{"etag": ..., "attributes": {...}}`` stored
under ``<namespace>:<table>:<partition>:<row>``; a set per partition indexes
its row keys. Conditional updates use an optimistic ``WATCH`` transaction, so
a concurrent writer makes ``EXEC`` fail instead of being overwritten.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager

import redis
from logging_utils import get_logger
from redis.exceptions import RedisError, WatchError

from .errors import ConcurrencyConflictError, EntityAlreadyExistsError, NotFoundError, TransientInfrastructureError
from .store import ANY_ETAG, Record, new_etag

logger = get_logger("record-store")


class RedisRecordStore:
    """Record store on a Redis server."""

    def __init__(self, client: redis.Redis, namespace: str = "retail"):
        self._client = client
        self._namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "retail") -> "RedisRecordStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), namespace)

    def _key(self, table: str, partition_key: str, row_key: str) -> str:
        return f"{self._namespace}:{table}:{partition_key}:{row_key}"

    def _index(self, table: str, partition_key: str) -> str:
        return f"{self._namespace}:{table}:{partition_key}"

    @staticmethod
    def _dump(record: Record) -> str:
        return json.dumps({"etag": record.etag, "attributes": record.attributes})

    @staticmethod
    def _load(partition_key: str, row_key: str, raw: str) -> Record:
        document = json.loads(raw)
        return Record(partition_key, row_key, document["attributes"], document["etag"])

    @contextmanager
    def _errors(self) -> Iterator[None]:
        try:
            yield
        except RedisError as e:
            logger.error(f"Record store unavailable: {e}")
            raise TransientInfrastructureError(f"Record store unavailable: {e}") from e

    def get(self, table: str, partition_key: str, row_key: str) -> Record:
        with self._errors():
            raw = self._client.get(self._key(table, partition_key, row_key))
        if raw is None:
            raise NotFoundError(f"{partition_key} '{row_key}' not found in table '{table}'")
        return self._load(partition_key, row_key, raw)

    def insert(self, table: str, partition_key: str, row_key: str, attributes: dict) -> Record:
        record = Record(partition_key, row_key, attributes, new_etag())
        with self._errors():
            pipe = self._client.pipeline()
            pipe.set(self._key(table, partition_key, row_key), self._dump(record), nx=True)
            pipe.sadd(self._index(table, partition_key), row_key)
            created, _ = pipe.execute()
        if not created:
            raise EntityAlreadyExistsError(f"{partition_key} '{row_key}' already exists in table '{table}'")
        return record

    def update(self, table: str, partition_key: str, row_key: str, attributes: dict, etag: str) -> Record:
        key = self._key(table, partition_key, row_key)
        record = Record(partition_key, row_key, attributes, new_etag())
        with self._errors(), self._client.pipeline() as pipe:
            try:
                pipe.watch(key)
                raw = pipe.get(key)
                if raw is None:
                    raise NotFoundError(f"{partition_key} '{row_key}' not found in table '{table}'")
                current = self._load(partition_key, row_key, raw)
                if etag != ANY_ETAG and current.etag != etag:
                    raise ConcurrencyConflictError(
                        f"{partition_key} '{row_key}' was modified concurrently "
                        f"(expected {etag}, found {current.etag})"
                    )
                pipe.multi()
                pipe.set(key, self._dump(record))
                pipe.execute()
            except WatchError as e:
                raise ConcurrencyConflictError(f"{partition_key} '{row_key}' was modified concurrently") from e
        return record

    def delete(self, table: str, partition_key: str, row_key: str) -> None:
        with self._errors():
            pipe = self._client.pipeline()
            pipe.delete(self._key(table, partition_key, row_key))
            pipe.srem(self._index(table, partition_key), row_key)
            pipe.execute()

    def query(self, table: str, partition_key: str) -> list[Record]:
        with self._errors():
            row_keys = sorted(self._client.smembers(self._index(table, partition_key)))
            if not row_keys:
                return []
            values = self._client.mget([self._key(table, partition_key, rk) for rk in row_keys])
        return [self._load(partition_key, rk, raw) for rk, raw in zip(row_keys, values) if raw is not None]

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as e:
            logger.error(f"Record store ping failed: {e}")
            return False
