"""Synchronous order status transitions."""

from typing import Optional

from logging_utils import get_logger
from retail_common.errors import NotFoundError, ValidationError
from retail_common.messages import STATUS_SERVICE_AGENT, OrderStatusUpdatedMessage
from retail_common.tables import Tables

from .producer import OrderProducer
from .schemas import OrderView

logger = get_logger("order-service")


class OrderStatusService:
    """Moves an existing order to a caller-supplied status."""

    def __init__(self, tables: Tables, producer: OrderProducer):
        self._tables = tables
        self._producer = producer

    def update_status(self, order_id: str, new_status: Optional[str]) -> OrderView:
        """Set the status of an order and announce the change.

        The write is conditioned on the version tag read here. A concurrent
        change fails the whole operation; nothing is retried.

        Args:
            order_id: Order to update.
            new_status: Status to set.

        Returns:
            OrderView: The order after the update.

        Raises:
            ValidationError: If the status is blank.
            NotFoundError: If the order does not exist.
            ConcurrencyConflictError: If the order changed since it was read.
        """
        if new_status is None or not new_status.strip():
            raise ValidationError("Status is required")

        order = self._tables.orders.find(order_id)
        if order is None:
            raise NotFoundError("Order not found")

        previous = order.status
        order.status = new_status
        try:
            updated = self._tables.orders.replace(order)
        except NotFoundError as e:
            raise NotFoundError("Order not found") from e

        self._producer.publish_status_updated(
            OrderStatusUpdatedMessage(
                order_id=updated.id,
                previous_status=previous,
                new_status=updated.status,
                updated_by=STATUS_SERVICE_AGENT,
            )
        )
        logger.info(f"Order {order_id} status changed: {previous} -> {updated.status}")
        return OrderView.from_order(updated)
