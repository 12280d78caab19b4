"""Publishing of fulfillment outcomes."""

from logging_utils import get_kafka_logger
from retail_common.messages import OrderStatusUpdatedMessage, StockUpdatedMessage
from retail_common.queue import MessagePublisher

logger = get_kafka_logger("fulfillment-service")


class FulfillmentProducer:
    """Publishes stock changes and order rejections."""

    def __init__(self, publisher: MessagePublisher, stock_topic: str, order_topic: str):
        """Initialize the producer.

        Args:
            publisher: Queue publisher (Kafka in production).
            stock_topic: Topic receiving StockUpdated messages.
            order_topic: Topic receiving OrderStatusUpdated messages.
        """
        self._publisher = publisher
        self.stock_topic = stock_topic
        self.order_topic = order_topic

    def publish_stock_updated(self, message: StockUpdatedMessage) -> None:
        self._publisher.publish(self.stock_topic, message, key=message.product_id)
        logger.debug(f"Published StockUpdated for {message.product_id} to {self.stock_topic}")

    def publish_order_rejected(self, message: OrderStatusUpdatedMessage) -> None:
        self._publisher.publish(self.order_topic, message, key=message.order_id)
        logger.debug(f"Published OrderStatusUpdated for {message.order_id} to {self.order_topic}")
