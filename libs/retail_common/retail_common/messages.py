"""Queue message envelopes.

Every message is a UTF-8 JSON object tagged by its ``Type`` field, with
PascalCase keys on the wire. Parsing dispatches on the tag: unknown tags are
skipped so new message kinds can share a queue with older consumers.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic import ValidationError as SchemaValidationError
from pydantic.alias_generators import to_pascal

from .entities import utcnow
from .errors import MalformedMessageError

# Prices travel as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

ORDER_QUEUE_PROCESSOR = "Order Queue Processor"
STATUS_SERVICE_AGENT = "System"


class QueueMessage(BaseModel):
    """Base class for all tagged queue payloads."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)

    def to_json(self) -> str:
        """Serialize with wire (PascalCase) field names."""
        return self.model_dump_json(by_alias=True)


class CreateOrderMessage(QueueMessage):
    """Request to persist an accepted order and take its stock.

    Attributes:
        order_id: Identifier assigned at intake; the consumer keys the record on it.
        customer_id: Ordering customer.
        customer_name: Customer display name at intake time.
        product_id: Ordered product.
        product_name: Product name snapshot.
        quantity: Units ordered.
        unit_price: Price snapshot captured at intake.
        previous_stock: Stock observed by the intake check.
    """

    type: Literal["CreateOrder"] = "CreateOrder"
    order_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
    customer_name: str
    product_id: str = Field(..., min_length=1)
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price: Money = Field(..., ge=0)
    previous_stock: int


class StockUpdatedMessage(QueueMessage):
    """Notification that a product's available stock changed."""

    type: Literal["StockUpdated"] = "StockUpdated"
    product_id: str
    product_name: str
    previous_stock: int
    new_stock: int
    updated_date_utc: datetime = Field(default_factory=utcnow)
    updated_by: str = ORDER_QUEUE_PROCESSOR


class OrderStatusUpdatedMessage(QueueMessage):
    """Notification that an order moved from one status to another."""

    type: Literal["OrderStatusUpdated"] = "OrderStatusUpdated"
    order_id: str
    previous_status: str
    new_status: str
    updated_date_utc: datetime = Field(default_factory=utcnow)
    updated_by: str = STATUS_SERVICE_AGENT


AnyQueueMessage = Union[CreateOrderMessage, StockUpdatedMessage, OrderStatusUpdatedMessage]

MESSAGE_TYPES: dict[str, type[QueueMessage]] = {
    "CreateOrder": CreateOrderMessage,
    "StockUpdated": StockUpdatedMessage,
    "OrderStatusUpdated": OrderStatusUpdatedMessage,
}


def parse_message(raw: Union[bytes, str]) -> Optional[AnyQueueMessage]:
    """Decode a queue payload into its message type.

    Args:
        raw: Message body as received from the queue.

    Returns:
        The parsed message, or None when the tag is missing or unknown.

    Raises:
        MalformedMessageError: If the body is not a JSON object or a known
            message type is missing fields or has invalid values.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessageError(f"Message is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedMessageError(f"Message must be a JSON object, got {type(data).__name__}")

    tag = data.get("Type")
    message_type = MESSAGE_TYPES.get(tag) if isinstance(tag, str) else None
    if message_type is None:
        return None

    try:
        return message_type.model_validate(data)
    except SchemaValidationError as e:
        raise MalformedMessageError(f"Invalid {data['Type']} message: {e}") from e
