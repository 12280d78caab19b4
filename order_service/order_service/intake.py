"""Order intake: validate a purchase request and queue it for fulfillment."""

import uuid
from typing import Optional

from logging_utils import get_logger
from retail_common.entities import OrderStatus, utcnow
from retail_common.errors import InsufficientStockError, NotFoundError, ValidationError
from retail_common.messages import CreateOrderMessage
from retail_common.tables import Tables

from .producer import OrderProducer
from .schemas import OrderView

logger = get_logger("order-service")


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class OrderIntakeService:
    """Accepts purchase requests and hands them to the order queue.

    No order record is written here. The caller gets a ``Queued`` view as soon
    as the queue has accepted the CreateOrder message; the fulfillment consumer
    persists the order later under the same identifier.
    """

    def __init__(self, tables: Tables, producer: OrderProducer):
        self._tables = tables
        self._producer = producer

    def create_order(self, customer_id: Optional[str], product_id: Optional[str], quantity: Optional[int]) -> OrderView:
        """Validate and enqueue an order.

        The stock check is a point-in-time snapshot, not a reservation. The
        fulfillment consumer re-checks stock when it applies the order.

        Args:
            customer_id: Customer placing the order.
            product_id: Product being ordered.
            quantity: Units requested.

        Returns:
            OrderView: The accepted order with status ``Queued``.

        Raises:
            ValidationError: If a field is missing or quantity is below 1.
            NotFoundError: If the product or customer does not exist.
            InsufficientStockError: If the product has fewer units than requested.
            TransientInfrastructureError: If the store or queue is unavailable.
        """
        if _blank(customer_id) or _blank(product_id) or quantity is None or quantity < 1:
            raise ValidationError("CustomerId, ProductId, Quantity >= 1 required")

        product = self._tables.products.find(product_id)
        if product is None:
            raise NotFoundError("Invalid ProductId")

        customer = self._tables.customers.find(customer_id)
        if customer is None:
            raise NotFoundError("Invalid CustomerId")

        if product.stock_available < quantity:
            logger.info(
                f"Rejected order for {quantity}x {product_id}: only {product.stock_available} available"
            )
            raise InsufficientStockError(product.stock_available)

        order_id = uuid.uuid4().hex
        message = CreateOrderMessage(
            order_id=order_id,
            customer_id=customer_id,
            customer_name=customer.display_name,
            product_id=product_id,
            product_name=product.product_name,
            quantity=quantity,
            unit_price=product.price,
            previous_stock=product.stock_available,
        )
        self._producer.publish_create_order(message)
        logger.bind(order_id=order_id, product_id=product_id, quantity=quantity).info(
            f"Order {order_id} queued for fulfillment"
        )

        return OrderView(
            id=order_id,
            customer_id=customer_id,
            product_id=product_id,
            product_name=product.product_name,
            quantity=quantity,
            unit_price=product.price,
            total_amount=product.price * quantity,
            order_date_utc=utcnow(),
            status=OrderStatus.QUEUED,
        )
