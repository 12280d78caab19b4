"""Publishing of order messages to the order queue."""

from logging_utils import get_kafka_logger
from retail_common.messages import CreateOrderMessage, OrderStatusUpdatedMessage
from retail_common.queue import MessagePublisher

logger = get_kafka_logger("order-service")


class OrderProducer:
    """Publishes order messages keyed by order id.

    Keying by order id sends every message about one order to the same
    partition, so a status change is never consumed before its CreateOrder.
    """

    def __init__(self, publisher: MessagePublisher, topic: str):
        """Initialize the producer.

        Args:
            publisher: Queue publisher (Kafka in production).
            topic: Order notifications topic.
        """
        self._publisher = publisher
        self.topic = topic

    def publish_create_order(self, message: CreateOrderMessage) -> None:
        """Publish a CreateOrder message.

        Raises:
            TransientInfrastructureError: If the queue does not accept the message.
        """
        self._publisher.publish(self.topic, message, key=message.order_id)
        logger.info(f"Published CreateOrder {message.order_id} to {self.topic}")

    def publish_status_updated(self, message: OrderStatusUpdatedMessage) -> None:
        """Publish an OrderStatusUpdated message."""
        self._publisher.publish(self.topic, message, key=message.order_id)
        logger.info(
            f"Published OrderStatusUpdated {message.order_id}: {message.previous_status} -> {message.new_status}"
        )
