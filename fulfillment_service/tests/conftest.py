"""Test fixtures for the fulfillment service tests."""

from decimal import Decimal
from typing import Callable, Optional

import pytest
from retail_common.errors import TransientInfrastructureError
from retail_common.messages import CreateOrderMessage
from retail_common.store import InMemoryRecordStore, Record

from fulfillment_service.fulfillment import OrderFulfillment
from fulfillment_service.producer import FulfillmentProducer


class ScriptedRecordStore(InMemoryRecordStore):
    """In-memory store whose next product update can be made to fail or race.

    ``fail_next_update`` makes the next update of the named table raise a
    transient error. ``before_next_update`` runs once right before the next
    update of the named table is applied, after the caller read its version tag.
    """

    def __init__(self):
        super().__init__()
        self.fail_next_update: Optional[str] = None
        self.before_next_update: Optional[tuple[str, Callable[[], None]]] = None

    def update(self, table: str, partition_key: str, row_key: str, attributes: dict, etag: str) -> Record:
        if self.fail_next_update == table:
            self.fail_next_update = None
            raise TransientInfrastructureError(f"Record store unavailable updating {table}")
        if self.before_next_update and self.before_next_update[0] == table:
            _, hook = self.before_next_update
            self.before_next_update = None
            hook()
        return super().update(table, partition_key, row_key, attributes, etag)


@pytest.fixture
def store():
    return ScriptedRecordStore()


@pytest.fixture
def fulfillment_producer(config, publisher):
    return FulfillmentProducer(publisher, config.queue_stock_updates, config.queue_order_notifications)


@pytest.fixture
def fulfillment(tables, fulfillment_producer, config):
    return OrderFulfillment(tables, fulfillment_producer, config)


@pytest.fixture
def make_order():
    """Build CreateOrder messages for the seeded customer and product."""

    def _make(order_id="a1b2c3", quantity=5, product_id="prod-001"):
        return CreateOrderMessage(
            order_id=order_id,
            customer_id="cust-12345",
            customer_name="Jane Doe",
            product_id=product_id,
            product_name="Espresso Machine",
            quantity=quantity,
            unit_price=Decimal("9.99"),
            previous_stock=50,
        )

    return _make
