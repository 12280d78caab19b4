"""Order fulfillment: persist queued orders and take their stock.

Each CreateOrder delivery runs two writes with no transaction between them:

1. insert the order under the id carried by the message (a duplicate key
   means an earlier delivery already did this, so it is kept as is);
2. decrement the product's stock with a compare-and-swap on its version tag.

The product record also remembers the stock taken for each recent order,
updated in the same conditional write as the stock. A redelivery after step 2
succeeded therefore finds its order there, skips the decrement and republishes
the same StockUpdated, while a redelivery after only step 1 succeeded still
applies it. An order already rejected by an earlier delivery never takes
stock; its rejection is announced again instead.
"""

from typing import Optional

from logging_utils import get_logger
from retail_common.config import PipelineConfig
from retail_common.entities import Order, OrderStatus, Product, StockTake
from retail_common.errors import EntityAlreadyExistsError
from retail_common.messages import (
    ORDER_QUEUE_PROCESSOR,
    AnyQueueMessage,
    CreateOrderMessage,
    OrderStatusUpdatedMessage,
    StockUpdatedMessage,
)
from retail_common.tables import Tables

from .producer import FulfillmentProducer

logger = get_logger("fulfillment-service")


class OrderFulfillment:
    """Handles deliveries from the order queue."""

    def __init__(self, tables: Tables, producer: FulfillmentProducer, config: PipelineConfig):
        self._tables = tables
        self._producer = producer
        self._config = config

    def handle(self, message: AnyQueueMessage) -> None:
        """Process one delivery. Messages other than CreateOrder are ignored.

        Any error propagates so the queue redelivers the message.
        """
        if not isinstance(message, CreateOrderMessage):
            logger.debug(f"Ignoring {message.type} message")
            return
        self.fulfill(message)

    def fulfill(self, message: CreateOrderMessage) -> Optional[StockUpdatedMessage]:
        """Persist the order and take its stock.

        Notifications are published on every delivery that reaches them, so a
        publish that failed is retried by the redelivery it causes.

        Args:
            message: The CreateOrder message.

        Returns:
            The published StockUpdated message, or None when the order was rejected.

        Raises:
            NotFoundError: If the product no longer exists.
            ConcurrencyConflictError: If the product or order changed between read and write.
            TransientInfrastructureError: If the store or queue is unavailable.
        """
        log = logger.bind(order_id=message.order_id, product_id=message.product_id)

        order = self._record_order(message, log)
        product = self._tables.products.get(message.product_id)

        if self._config.dedupe_redeliveries:
            earlier = product.stock_take_for(message.order_id)
            if earlier is not None:
                log.warning(
                    f"Stock for order {message.order_id} was already taken by an earlier delivery, "
                    "republishing its stock update"
                )
                return self._publish_stock_take(product, earlier)

        if order.status == OrderStatus.REJECTED:
            log.warning(f"Order {order.id} was rejected by an earlier delivery, republishing the rejection")
            self._publish_rejection(order.id, OrderStatus.SUBMITTED)
            return None

        if product.stock_available < message.quantity:
            self._reject(order, product, message.quantity, log)
            return None

        take = product.take_stock(message.order_id, message.quantity, self._config.processed_order_retention)
        updated = self._tables.products.replace(product)
        log.info(f"Stock updated for product {updated.id}: {take.previous_stock} -> {take.new_stock}")
        return self._publish_stock_take(updated, take)

    def _record_order(self, message: CreateOrderMessage, log) -> Order:
        order = Order(
            id=message.order_id,
            customer_id=message.customer_id,
            product_id=message.product_id,
            product_name=message.product_name,
            quantity=message.quantity,
            unit_price=message.unit_price,
            status=OrderStatus.SUBMITTED,
        )
        try:
            created = self._tables.orders.add(order)
        except EntityAlreadyExistsError:
            log.info(f"Order {order.id} already exists, continuing redelivered message")
            return self._tables.orders.get(order.id)
        log.info(f"Order {order.id} created from queue")
        return created

    def _publish_stock_take(self, product: Product, take: StockTake) -> StockUpdatedMessage:
        stock_message = StockUpdatedMessage(
            product_id=product.id,
            product_name=product.product_name,
            previous_stock=take.previous_stock,
            new_stock=take.new_stock,
            updated_date_utc=take.taken_at,
            updated_by=ORDER_QUEUE_PROCESSOR,
        )
        self._producer.publish_stock_updated(stock_message)
        return stock_message

    def _reject(self, order: Order, product: Product, quantity: int, log) -> None:
        log.error(
            f"Insufficient stock for order {order.id}: requested {quantity}, "
            f"available {product.stock_available}; rejecting"
        )
        previous = order.status
        order.status = OrderStatus.REJECTED
        self._tables.orders.replace(order)
        self._publish_rejection(order.id, previous)

    def _publish_rejection(self, order_id: str, previous_status: str) -> None:
        self._producer.publish_order_rejected(
            OrderStatusUpdatedMessage(
                order_id=order_id,
                previous_status=previous_status,
                new_status=OrderStatus.REJECTED,
                updated_by=ORDER_QUEUE_PROCESSOR,
            )
        )
