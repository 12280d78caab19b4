"""Entity models persisted in the record store."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar, Optional

from pydantic import BaseModel, Field

from .store import Record


class OrderStatus:
    """Well-known order statuses. Callers may set any other non-blank status."""

    QUEUED = "Queued"
    SUBMITTED = "Submitted"
    REJECTED = "Rejected"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Entity(BaseModel):
    """A record-store row: fixed partition per entity kind, row key is the id.

    Attributes:
        id: Entity identifier, stored as the row key.
        etag: Version tag of the record this instance was read from.
    """

    PARTITION_KEY: ClassVar[str]

    id: str = Field(..., min_length=1)
    etag: Optional[str] = Field(None, exclude=True)

    def to_attributes(self) -> dict:
        """Serialize every field except the keys and version tag."""
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_record(cls, record: Record):
        """Rebuild an entity from a stored record, carrying its version tag."""
        return cls.model_validate({**record.attributes, "id": record.row_key, "etag": record.etag})


class Customer(Entity):
    """Customer placing orders. Read-only to the pipeline."""

    PARTITION_KEY: ClassVar[str] = "Customer"

    name: str
    surname: str
    email: Optional[str] = None
    shipping_address: Optional[str] = None
    phone: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.name} {self.surname}"


class StockTake(BaseModel):
    """One order's quantity taken from a product, as written with the stock."""

    order_id: str
    previous_stock: int
    new_stock: int
    taken_at: datetime = Field(default_factory=utcnow)


class Product(Entity):
    """Product with available stock.

    ``stock_takes`` remembers the most recent orders whose quantity has already
    been taken from ``stock_available``, with the stock levels before and after.
    It is written in the same conditional update as the stock, so both change
    together or not at all.
    """

    PARTITION_KEY: ClassVar[str] = "Product"

    product_name: str
    price: Decimal = Field(..., ge=0)
    stock_available: int
    stock_takes: list[StockTake] = Field(default_factory=list)

    @property
    def fulfilled_order_ids(self) -> list[str]:
        return [take.order_id for take in self.stock_takes]

    def has_fulfilled(self, order_id: str) -> bool:
        return self.stock_take_for(order_id) is not None

    def stock_take_for(self, order_id: str) -> Optional[StockTake]:
        for take in reversed(self.stock_takes):
            if take.order_id == order_id:
                return take
        return None

    def take_stock(self, order_id: str, quantity: int, retention: int) -> StockTake:
        """Decrement stock for an order and remember the change.

        Args:
            order_id: Order whose quantity is being applied.
            quantity: Units to remove.
            retention: Maximum number of stock takes kept on the record.

        Returns:
            StockTake: The order id with the stock before and after.
        """
        take = StockTake(
            order_id=order_id,
            previous_stock=self.stock_available,
            new_stock=self.stock_available - quantity,
        )
        self.stock_available = take.new_stock
        self.stock_takes = [*self.stock_takes, take][-retention:]
        return take


class Order(Entity):
    """Order record created by the fulfillment consumer."""

    PARTITION_KEY: ClassVar[str] = "Order"

    customer_id: str
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)
    order_date_utc: datetime = Field(default_factory=utcnow)
    status: str = OrderStatus.SUBMITTED

    @property
    def total_amount(self) -> Decimal:
        return self.unit_price * self.quantity
