"""Shared test fixtures for the retail order services."""

from decimal import Decimal
from typing import Optional

import pytest
from retail_common.config import PipelineConfig
from retail_common.entities import Customer, Product
from retail_common.messages import QueueMessage
from retail_common.store import InMemoryRecordStore
from retail_common.tables import Tables


class RecordingPublisher:
    """Publisher that keeps every message instead of sending it.

    Set ``fail_with`` to an exception to make the next publishes raise it.
    """

    def __init__(self):
        self.published: list[tuple[str, QueueMessage, Optional[str]]] = []
        self.fail_with: Optional[Exception] = None

    def publish(self, topic: str, message: QueueMessage, key: Optional[str] = None) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.published.append((topic, message, key))

    def messages(self, topic: Optional[str] = None, message_type: Optional[type] = None) -> list[QueueMessage]:
        return [
            m
            for t, m, _ in self.published
            if (topic is None or t == topic) and (message_type is None or isinstance(m, message_type))
        ]


@pytest.fixture
def config():
    """Pipeline configuration for tests: in-memory store, immediate redelivery."""
    return PipelineConfig(
        bootstrap_servers="localhost:9092",
        record_store_url="memory://",
        max_delivery_attempts=3,
        redelivery_delay_seconds=0,
    )


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def tables(config, store):
    """Tables seeded with one product (stock 50) and one customer."""
    tables = Tables.open(config, store)
    tables.products.add(
        Product(id="prod-001", product_name="Espresso Machine", price=Decimal("9.99"), stock_available=50)
    )
    tables.customers.add(Customer(id="cust-12345", name="Jane", surname="Doe", email="jane@example.com"))
    return tables


@pytest.fixture
def publisher():
    return RecordingPublisher()
