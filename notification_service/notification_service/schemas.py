"""Schemas for notification service data models."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from retail_common.entities import utcnow


class StockAlert(BaseModel):
    """Alert raised when a product's stock falls to or below the threshold.

    Attributes:
        alert_id: Unique identifier for the alert
        product_id: Product whose stock is low
        product_name: Product name from the stock update
        stock_available: Stock after the update
        threshold: Threshold in force when the alert was raised
        priority: ``high`` when the product is out of stock, otherwise ``medium``
        created_at: When the alert was raised
    """

    alert_id: str = Field(default_factory=lambda: f"alert-{uuid.uuid4().hex[:8]}")
    product_id: str
    product_name: str
    stock_available: int
    threshold: int = Field(..., ge=0)
    priority: Literal["medium", "high"] = "medium"
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product_id": "prod-001",
                "product_name": "Espresso Machine",
                "stock_available": 2,
                "threshold": 5,
                "priority": "medium",
            }
        }
    )
