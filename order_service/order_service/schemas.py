"""Request and response models for the order service HTTP boundary."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from retail_common.entities import Order
from retail_common.messages import Money


class OrderCreate(BaseModel):
    """Purchase request.

    Fields are optional here so that missing values reach the intake service
    and are rejected with its validation error instead of a schema error.

    Attributes:
        customer_id (str): Customer placing the order.
        product_id (str): Product being ordered.
        quantity (int): Units requested, at least 1.
    """

    customer_id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[int] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"customer_id": "cust-12345", "product_id": "prod-001", "quantity": 2},
        }
    )


class OrderStatusUpdate(BaseModel):
    """New status for an existing order."""

    status: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={"example": {"status": "Shipped"}})


class OrderView(BaseModel):
    """Order as returned to callers.

    Attributes:
        id (str): Order identifier.
        customer_id (str): Ordering customer.
        product_id (str): Ordered product.
        product_name (str): Product name at order time.
        quantity (int): Units ordered.
        unit_price (Decimal): Price per unit at order time.
        total_amount (Decimal): unit_price times quantity.
        order_date_utc (datetime): For a ``Queued`` view, when intake accepted
            the order. For a persisted order, when the fulfillment consumer
            wrote it, which is never earlier than the intake time.
        status (str): Queued, Submitted, or any status set afterwards.
    """

    id: str
    customer_id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: Money
    total_amount: Money
    order_date_utc: datetime
    status: str

    @classmethod
    def from_order(cls, order: Order) -> "OrderView":
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            product_id=order.product_id,
            product_name=order.product_name,
            quantity=order.quantity,
            unit_price=order.unit_price,
            total_amount=order.total_amount,
            order_date_utc=order.order_date_utc,
            status=order.status,
        )
