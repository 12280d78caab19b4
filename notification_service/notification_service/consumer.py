"""Kafka consumer feeding stock and order notifications into the sink."""

from retail_common.config import PipelineConfig
from retail_common.queue import QueueConsumer, QueueProducer

DEFAULT_GROUP_ID = "notification-service"


def create_consumer(config: PipelineConfig, dead_letters: QueueProducer) -> QueueConsumer:
    """Create a consumer subscribed to the stock and order queues.

    The order queue is read with this service's own consumer group, so it
    receives every message independently of the fulfillment service.
    """
    consumer = QueueConsumer(config, group_id=config.consumer_group or DEFAULT_GROUP_ID, dead_letters=dead_letters)
    consumer.subscribe([config.queue_stock_updates, config.queue_order_notifications])
    return consumer
