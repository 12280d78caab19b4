"""Typed access to entity tables on top of a record store."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from .config import PipelineConfig
from .entities import Customer, Entity, Order, Product
from .errors import NotFoundError, ValidationError
from .redis_store import RedisRecordStore
from .store import InMemoryRecordStore, RecordStore

EntityT = TypeVar("EntityT", bound=Entity)


class EntityTable(Generic[EntityT]):
    """One table of a single entity kind, partitioned by ``PARTITION_KEY``."""

    def __init__(self, store: RecordStore, table_name: str, entity_type: type[EntityT]):
        self._store = store
        self.table_name = table_name
        self.entity_type = entity_type

    @property
    def partition_key(self) -> str:
        return self.entity_type.PARTITION_KEY

    def get(self, entity_id: str) -> EntityT:
        record = self._store.get(self.table_name, self.partition_key, entity_id)
        return self.entity_type.from_record(record)

    def find(self, entity_id: str) -> Optional[EntityT]:
        try:
            return self.get(entity_id)
        except NotFoundError:
            return None

    def add(self, entity: EntityT) -> EntityT:
        record = self._store.insert(self.table_name, self.partition_key, entity.id, entity.to_attributes())
        return self.entity_type.from_record(record)

    def replace(self, entity: EntityT) -> EntityT:
        """Write ``entity`` back, conditioned on the version tag it was read with."""
        if not entity.etag:
            raise ValidationError(f"{self.partition_key} '{entity.id}' has no version tag to update against")
        record = self._store.update(
            self.table_name, self.partition_key, entity.id, entity.to_attributes(), entity.etag
        )
        return self.entity_type.from_record(record)

    def delete(self, entity_id: str) -> None:
        self._store.delete(self.table_name, self.partition_key, entity_id)

    def list_all(self) -> list[EntityT]:
        return [self.entity_type.from_record(r) for r in self._store.query(self.table_name, self.partition_key)]


@dataclass
class Tables:
    """The three tables the pipeline touches."""

    orders: EntityTable[Order]
    products: EntityTable[Product]
    customers: EntityTable[Customer]
    store: RecordStore

    @classmethod
    def open(cls, config: PipelineConfig, store: RecordStore) -> "Tables":
        return cls(
            orders=EntityTable(store, config.table_order, Order),
            products=EntityTable(store, config.table_product, Product),
            customers=EntityTable(store, config.table_customer, Customer),
            store=store,
        )


def create_record_store(url: str) -> RecordStore:
    """Build a record store from ``memory://`` or ``redis://``/``rediss://`` URLs."""
    if url.startswith("memory://"):
        return InMemoryRecordStore()
    if url.startswith(("redis://", "rediss://", "unix://")):
        return RedisRecordStore.from_url(url)
    raise ValueError(f"Unsupported record store URL: {url}")
