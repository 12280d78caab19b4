"""Stock notification sink and its subscribers.

The sink is where downstream consumers of stock changes attach (reporting
sync, alerting). Subscribers only observe; none of them writes order or
product records. A subscriber that raises fails the delivery, and the queue
redelivers the message to every subscriber.
"""

from collections.abc import Callable
from typing import Optional, Protocol

from logging_utils import get_logger
from retail_common.messages import AnyQueueMessage, OrderStatusUpdatedMessage, StockUpdatedMessage

from .schemas import StockAlert

logger = get_logger("notification-service")


class StockSubscriber(Protocol):
    """Protocol defining the interface for stock update subscribers."""

    def on_stock_updated(self, message: StockUpdatedMessage) -> None:
        """React to one stock change."""
        ...


class LoggingStockSubscriber:
    """Emits one structured log record per stock change."""

    def on_stock_updated(self, message: StockUpdatedMessage) -> None:
        logger.bind(
            event="stock_updated",
            product_id=message.product_id,
            product_name=message.product_name,
            previous_stock=message.previous_stock,
            new_stock=message.new_stock,
            delta=message.new_stock - message.previous_stock,
            updated_by=message.updated_by,
            updated_date_utc=message.updated_date_utc.isoformat(),
        ).info(
            f"Stock updated | product_id={message.product_id} | "
            f"{message.previous_stock} -> {message.new_stock} | by={message.updated_by}"
        )


class LowStockAlertSubscriber:
    """Raises a StockAlert when stock drops to or below a threshold."""

    def __init__(self, threshold: int, alert_handler: Optional[Callable[[StockAlert], None]] = None):
        """Initialize the subscriber.

        Args:
            threshold: Stock level at or below which an alert is raised.
            alert_handler: Optional callback receiving each alert.
        """
        self.threshold = threshold
        self._alert_handler = alert_handler

    def on_stock_updated(self, message: StockUpdatedMessage) -> None:
        if message.new_stock > self.threshold:
            return

        alert = StockAlert(
            product_id=message.product_id,
            product_name=message.product_name,
            stock_available=message.new_stock,
            threshold=self.threshold,
            priority="high" if message.new_stock <= 0 else "medium",
        )
        logger.bind(event="low_stock", product_id=alert.product_id, stock_available=alert.stock_available).warning(
            f"Low stock | product_id={alert.product_id} | available={alert.stock_available} | "
            f"threshold={self.threshold} | priority={alert.priority}"
        )
        if self._alert_handler:
            self._alert_handler(alert)


class StockNotificationSink:
    """Fans stock updates out to subscribers and logs order status changes."""

    def __init__(self, subscribers: Optional[list[StockSubscriber]] = None):
        """Initialize the sink.

        Args:
            subscribers: Subscribers notified of every stock update. Defaults to
                structured logging only.
        """
        self._subscribers: list[StockSubscriber] = (
            list(subscribers) if subscribers is not None else [LoggingStockSubscriber()]
        )

    def subscribe(self, subscriber: StockSubscriber) -> None:
        """Attach another subscriber."""
        self._subscribers.append(subscriber)

    def handle(self, message: AnyQueueMessage) -> None:
        """Process one delivery from the stock or order queue."""
        if isinstance(message, StockUpdatedMessage):
            for subscriber in self._subscribers:
                subscriber.on_stock_updated(message)
        elif isinstance(message, OrderStatusUpdatedMessage):
            logger.bind(event="order_status_updated", order_id=message.order_id).info(
                f"Order status updated | order_id={message.order_id} | "
                f"{message.previous_status} -> {message.new_status} | by={message.updated_by}"
            )
        else:
            logger.debug(f"Ignoring {message.type} message")
