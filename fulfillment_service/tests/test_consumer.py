"""Tests for the fulfillment consumer wiring."""

from unittest.mock import MagicMock, Mock

import pytest

from fulfillment_service.consumer import consume_orders, create_consumer


@pytest.fixture
def mock_kafka_consumer(mocker):
    consumer_mock = MagicMock()
    consumer_mock.consumer_class = mocker.patch("retail_common.queue.Consumer", return_value=consumer_mock)
    return consumer_mock


def test_create_consumer(config, mock_kafka_consumer):
    """Test Kafka consumer creation."""
    consumer = create_consumer(config, dead_letters=Mock())

    settings = mock_kafka_consumer.consumer_class.call_args.args[0]
    assert settings["group.id"] == "fulfillment-service"
    assert settings["enable.auto.commit"] is False
    mock_kafka_consumer.subscribe.assert_called_once_with(["order-notifications"])
    assert consumer.config is config


def test_create_consumer_group_override(config, mock_kafka_consumer):
    create_consumer(config.model_copy(update={"consumer_group": "fulfillment-blue"}), dead_letters=Mock())

    assert mock_kafka_consumer.consumer_class.call_args.args[0]["group.id"] == "fulfillment-blue"


def test_consume_orders_applies_and_commits(config, mock_kafka_consumer, fulfillment, tables, make_order):
    """A CreateOrder read from Kafka is fulfilled and its offset committed."""
    consumer = create_consumer(config, dead_letters=Mock())
    msg = Mock()
    msg.error.return_value = None
    msg.value.return_value = make_order(quantity=5).to_json().encode("utf-8")
    msg.topic.return_value = "order-notifications"
    msg.partition.return_value = 0
    msg.offset.return_value = 7

    def poll(timeout):
        consumer.stop()
        return msg

    mock_kafka_consumer.poll.side_effect = poll

    consume_orders(consumer, fulfillment)

    assert tables.products.get("prod-001").stock_available == 45
    mock_kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)
    mock_kafka_consumer.close.assert_called_once()
