"""Unit tests for the Kafka producer and the redelivering consumer."""

import json
from unittest.mock import MagicMock, Mock

import pytest
from confluent_kafka import KafkaError
from retail_common.errors import ConcurrencyConflictError, TransientInfrastructureError
from retail_common.messages import CreateOrderMessage, StockUpdatedMessage
from retail_common.queue import QueueConsumer, QueueProducer

CREATE_ORDER = {
    "Type": "CreateOrder",
    "OrderId": "a1b2c3",
    "CustomerId": "cust-12345",
    "CustomerName": "Jane Doe",
    "ProductId": "prod-001",
    "ProductName": "Espresso Machine",
    "Quantity": 5,
    "UnitPrice": 9.99,
    "PreviousStock": 50,
}


def make_message(value, topic="order-notifications", partition=0, offset=42, key=b"a1b2c3"):
    """Build a fake Kafka message."""
    msg = Mock()
    msg.error.return_value = None
    msg.value.return_value = value
    msg.topic.return_value = topic
    msg.partition.return_value = partition
    msg.offset.return_value = offset
    msg.key.return_value = key
    return msg


@pytest.fixture
def mock_kafka_producer(mocker):
    """Mock the Kafka producer class."""
    producer_mock = MagicMock()
    producer_mock.flush.return_value = 0
    producer_class = mocker.patch("retail_common.queue.Producer", return_value=producer_mock)
    producer_mock.producer_class = producer_class
    return producer_mock


@pytest.fixture
def mock_kafka_consumer(mocker):
    """Mock the Kafka consumer class."""
    consumer_mock = MagicMock()
    consumer_class = mocker.patch("retail_common.queue.Consumer", return_value=consumer_mock)
    consumer_mock.consumer_class = consumer_class
    return consumer_mock


@pytest.fixture
def dead_letters():
    return Mock()


@pytest.fixture
def queue_consumer(config, mock_kafka_consumer, dead_letters):
    return QueueConsumer(config, group_id="test-group", dead_letters=dead_letters)


def test_producer_initialization(mock_kafka_producer):
    """The producer requires full acknowledgement and bounds delivery time."""
    QueueProducer("dump:9092", client_id="order-service", publish_timeout=5.0)

    mock_kafka_producer.producer_class.assert_called_once_with(
        {"bootstrap.servers": "dump:9092", "client.id": "order-service", "acks": "all", "message.timeout.ms": 5000}
    )


def test_publish_sends_json_and_waits_for_ack(mock_kafka_producer):
    """Publishing serializes with wire names, keys the message and flushes."""
    producer = QueueProducer("dump:9092", client_id="test")
    message = StockUpdatedMessage(product_id="prod-001", product_name="Espresso Machine", previous_stock=50, new_stock=45)

    producer.publish("stock-updates", message, key="prod-001")

    kwargs = mock_kafka_producer.produce.call_args.kwargs
    assert kwargs["topic"] == "stock-updates"
    assert kwargs["key"] == b"prod-001"
    assert json.loads(kwargs["value"])["NewStock"] == 45
    mock_kafka_producer.flush.assert_called_once_with(5.0)


def test_publish_unacknowledged_raises(mock_kafka_producer):
    """A message still queued after the timeout is a transient failure."""
    mock_kafka_producer.flush.return_value = 1
    producer = QueueProducer("dump:9092", client_id="test")

    with pytest.raises(TransientInfrastructureError):
        producer.send("stock-updates", b"{}")


def test_publish_delivery_error_raises(mock_kafka_producer):
    """Errors reported through the delivery callback fail the publish."""

    def produce(**kwargs):
        kwargs["on_delivery"]("broker down", Mock())

    mock_kafka_producer.produce.side_effect = produce
    producer = QueueProducer("dump:9092", client_id="test")

    with pytest.raises(TransientInfrastructureError, match="broker down"):
        producer.send("stock-updates", b"{}")


def test_publish_buffer_full_raises(mock_kafka_producer):
    mock_kafka_producer.produce.side_effect = BufferError("queue full")
    producer = QueueProducer("dump:9092", client_id="test")

    with pytest.raises(TransientInfrastructureError):
        producer.send("stock-updates", b"{}")


def test_consumer_disables_auto_commit(queue_consumer, mock_kafka_consumer):
    """Offsets are committed by hand, after the handler returns."""
    mock_kafka_consumer.consumer_class.assert_called_once_with(
        {
            "auto.offset.reset": "earliest",
            "enable.auto.commit": False,
            "session.timeout.ms": 30000,
            "max.poll.interval.ms": 300000,
            "bootstrap.servers": "localhost:9092",
            "group.id": "test-group",
        }
    )


def test_successful_delivery_is_committed(queue_consumer, mock_kafka_consumer):
    msg = make_message(json.dumps(CREATE_ORDER).encode())
    mock_kafka_consumer.poll.return_value = msg
    handler = Mock()

    assert queue_consumer.poll_once(handler) is True

    handler.assert_called_once()
    assert isinstance(handler.call_args.args[0], CreateOrderMessage)
    mock_kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)
    assert queue_consumer.stats["messages_processed"] == 1


def test_empty_poll(queue_consumer, mock_kafka_consumer):
    mock_kafka_consumer.poll.return_value = None

    assert queue_consumer.poll_once(Mock()) is False


def test_partition_eof_is_not_an_error(queue_consumer, mock_kafka_consumer):
    msg = Mock()
    msg.error.return_value.code.return_value = KafkaError._PARTITION_EOF
    mock_kafka_consumer.poll.return_value = msg

    assert queue_consumer.poll_once(Mock()) is False
    assert queue_consumer.stats["errors"] == 0


def test_unknown_message_type_is_committed_without_handler(queue_consumer, mock_kafka_consumer):
    """Messages for other consumers of a shared queue are acknowledged and skipped."""
    msg = make_message(b'{"Type": "InvoiceIssued"}')
    mock_kafka_consumer.poll.return_value = msg
    handler = Mock()

    queue_consumer.poll_once(handler)

    handler.assert_not_called()
    mock_kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)


def test_failed_delivery_is_redelivered_not_committed(queue_consumer, mock_kafka_consumer, dead_letters):
    """A handler error seeks back to the message instead of committing it."""
    mock_kafka_consumer.poll.return_value = make_message(json.dumps(CREATE_ORDER).encode(), offset=42)
    handler = Mock(side_effect=ConcurrencyConflictError("stale version"))

    queue_consumer.poll_once(handler)

    mock_kafka_consumer.commit.assert_not_called()
    seek_target = mock_kafka_consumer.seek.call_args.args[0]
    assert (seek_target.topic, seek_target.partition, seek_target.offset) == ("order-notifications", 0, 42)
    dead_letters.send.assert_not_called()
    assert queue_consumer.stats["redeliveries"] == 1
    assert queue_consumer.stats["errors"] == 1


def test_redelivery_then_success(queue_consumer, mock_kafka_consumer):
    """A conflict on the first delivery is resolved by the second."""
    msg = make_message(json.dumps(CREATE_ORDER).encode())
    mock_kafka_consumer.poll.return_value = msg
    handler = Mock(side_effect=[ConcurrencyConflictError("stale version"), None])

    queue_consumer.poll_once(handler)
    queue_consumer.poll_once(handler)

    assert handler.call_count == 2
    mock_kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)
    assert queue_consumer._attempts == {}


def test_exhausted_message_is_dead_lettered(queue_consumer, mock_kafka_consumer, dead_letters):
    """After max_delivery_attempts the message goes to the poison topic and is committed."""
    value = json.dumps(CREATE_ORDER).encode()
    msg = make_message(value)
    mock_kafka_consumer.poll.return_value = msg
    handler = Mock(side_effect=RuntimeError("store exploded"))

    for _ in range(3):
        queue_consumer.poll_once(handler)

    assert handler.call_count == 3
    assert mock_kafka_consumer.seek.call_count == 2
    dead_letters.send.assert_called_once()
    args, kwargs = dead_letters.send.call_args
    assert args == ("order-notifications-poison", value)
    assert kwargs["key"] == b"a1b2c3"
    assert ("x-delivery-attempts", b"3") in kwargs["headers"]
    mock_kafka_consumer.commit.assert_called_once_with(message=msg, asynchronous=False)
    assert queue_consumer.stats["dead_lettered"] == 1


def test_malformed_message_is_dead_lettered_immediately(queue_consumer, mock_kafka_consumer, dead_letters):
    """A payload that can never parse is not retried."""
    mock_kafka_consumer.poll.return_value = make_message(b'{"Type": "CreateOrder", "OrderId": "x"}')
    handler = Mock()

    queue_consumer.poll_once(handler)

    handler.assert_not_called()
    assert dead_letters.send.call_args.args[0] == "order-notifications-poison"
    mock_kafka_consumer.commit.assert_called_once()


def test_dead_letter_failure_falls_back_to_redelivery(queue_consumer, mock_kafka_consumer, dead_letters):
    """If the poison topic is unreachable the message is kept, not dropped."""
    dead_letters.send.side_effect = TransientInfrastructureError("broker down")
    mock_kafka_consumer.poll.return_value = make_message(b"not json")

    queue_consumer.poll_once(Mock())

    mock_kafka_consumer.commit.assert_not_called()
    mock_kafka_consumer.seek.assert_called_once()


def test_redelivery_delay_pauses_partition(config, mock_kafka_consumer, dead_letters):
    """With a delay the partition is paused, then resumed once the delay has passed."""
    consumer = QueueConsumer(
        config.model_copy(update={"redelivery_delay_seconds": 30}), group_id="test-group", dead_letters=dead_letters
    )
    mock_kafka_consumer.poll.return_value = make_message(json.dumps(CREATE_ORDER).encode())

    consumer.poll_once(Mock(side_effect=RuntimeError("boom")))

    mock_kafka_consumer.pause.assert_called_once()
    assert ("order-notifications", 0) in consumer._paused

    partition, _ = consumer._paused[("order-notifications", 0)]
    consumer._paused[("order-notifications", 0)] = (partition, 0.0)
    mock_kafka_consumer.poll.return_value = None
    consumer.poll_once(Mock())

    mock_kafka_consumer.resume.assert_called_once_with([partition])
    assert consumer._paused == {}


def test_process_messages_stops_and_closes(queue_consumer, mock_kafka_consumer):
    """The loop exits when stopped and closes the consumer exactly once."""
    handler = Mock(side_effect=lambda message: queue_consumer.stop())
    mock_kafka_consumer.poll.return_value = make_message(json.dumps(CREATE_ORDER).encode())

    queue_consumer.process_messages(handler)
    queue_consumer.close()

    handler.assert_called_once()
    mock_kafka_consumer.close.assert_called_once()
