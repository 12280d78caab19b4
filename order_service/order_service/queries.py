"""Read and administrative operations on persisted orders."""

from logging_utils import get_logger
from retail_common.errors import NotFoundError
from retail_common.tables import Tables

from .schemas import OrderView

logger = get_logger("order-service")


class OrderQueries:
    """List, fetch and delete order records."""

    def __init__(self, tables: Tables):
        self._tables = tables

    def list_orders(self) -> list[OrderView]:
        """All persisted orders, newest first."""
        orders = sorted(self._tables.orders.list_all(), key=lambda o: o.order_date_utc, reverse=True)
        return [OrderView.from_order(o) for o in orders]

    def get_order(self, order_id: str) -> OrderView:
        order = self._tables.orders.find(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return OrderView.from_order(order)

    def delete_order(self, order_id: str) -> None:
        """Administrative delete. Deleting a missing order succeeds."""
        self._tables.orders.delete(order_id)
        logger.warning(f"Order {order_id} deleted")
