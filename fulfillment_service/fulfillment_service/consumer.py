"""Kafka consumer feeding the order queue into fulfillment."""

from retail_common.config import PipelineConfig
from retail_common.queue import QueueConsumer, QueueProducer

from .fulfillment import OrderFulfillment

DEFAULT_GROUP_ID = "fulfillment-service"


def create_consumer(config: PipelineConfig, dead_letters: QueueProducer) -> QueueConsumer:
    """Create a consumer subscribed to the order queue."""
    consumer = QueueConsumer(config, group_id=config.consumer_group or DEFAULT_GROUP_ID, dead_letters=dead_letters)
    consumer.subscribe([config.queue_order_notifications])
    return consumer


def consume_orders(consumer: QueueConsumer, fulfillment: OrderFulfillment) -> None:
    """Deliver order queue messages to fulfillment until the consumer is stopped."""
    consumer.process_messages(fulfillment.handle)
