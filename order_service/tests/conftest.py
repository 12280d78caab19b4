"""Test fixtures for the order service tests."""

import pytest
from fastapi.testclient import TestClient

from order_service.intake import OrderIntakeService
from order_service.producer import OrderProducer
from order_service.queries import OrderQueries
from order_service.server import app, state
from order_service.status import OrderStatusService


@pytest.fixture
def order_producer(config, publisher):
    """Order producer writing to the recording publisher."""
    return OrderProducer(publisher, config.queue_order_notifications)


@pytest.fixture
def intake(tables, order_producer):
    return OrderIntakeService(tables, order_producer)


@pytest.fixture
def status_service(tables, order_producer):
    return OrderStatusService(tables, order_producer)


@pytest.fixture
def queries(tables):
    return OrderQueries(tables)


@pytest.fixture
def test_client(config, store, tables, publisher):
    """Create a test client wired to the in-memory store and recording publisher."""
    state.configure(config, store, publisher)
    yield TestClient(app)
    state.__init__()
