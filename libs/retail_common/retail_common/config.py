"""Pipeline configuration built once at startup and passed to every component."""

import os
from collections.abc import Mapping
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

_TRUE_VALUES = {"1", "true", "yes", "on"}


class PipelineConfig(BaseModel):
    """Connection identifiers, table/queue names and delivery policy.

    Attributes:
        bootstrap_servers: Comma-separated list of Kafka broker addresses.
        record_store_url: ``memory://`` or a ``redis://`` URL.
        table_order: Table holding order records.
        table_product: Table holding product records.
        table_customer: Table holding customer records.
        queue_order_notifications: Topic carrying CreateOrder and OrderStatusUpdated.
        queue_stock_updates: Topic carrying StockUpdated.
        dead_letter_suffix: Appended to a topic name to form its dead-letter topic.
        max_delivery_attempts: Deliveries before a message is dead-lettered.
        redelivery_delay_seconds: Wait before a failed message is delivered again.
        publish_timeout_seconds: Time allowed for the broker to acknowledge a publish.
        processed_order_retention: Applied order ids remembered per product.
        dedupe_redeliveries: Skip the stock decrement for already applied orders.
        low_stock_threshold: Stock level at or below which an alert is logged.
        consumer_group: Kafka consumer group, defaults to the service name.
        log_level: Minimum log level.
        log_file: Optional log file path.
        log_json: Emit JSON log lines.
    """

    model_config = ConfigDict(frozen=True)

    bootstrap_servers: str = "kafka:9092"
    record_store_url: str = "redis://redis:6379/0"
    table_order: str = "Order"
    table_product: str = "Product"
    table_customer: str = "Customer"
    queue_order_notifications: str = "order-notifications"
    queue_stock_updates: str = "stock-updates"
    dead_letter_suffix: str = "-poison"
    max_delivery_attempts: int = Field(5, ge=1)
    redelivery_delay_seconds: float = Field(30.0, ge=0)
    publish_timeout_seconds: float = Field(5.0, gt=0)
    processed_order_retention: int = Field(500, ge=1)
    dedupe_redeliveries: bool = True
    low_stock_threshold: int = Field(5, ge=0)
    consumer_group: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """Build the configuration from environment variables.

        Args:
            environ: Mapping to read from, defaults to ``os.environ``.

        Returns:
            PipelineConfig: Configuration with unset variables left at their defaults.
        """
        env = os.environ if environ is None else environ
        names = {
            "bootstrap_servers": "KAFKA_BOOTSTRAP_SERVERS",
            "record_store_url": "RECORD_STORE_URL",
            "table_order": "TABLE_ORDER",
            "table_product": "TABLE_PRODUCT",
            "table_customer": "TABLE_CUSTOMER",
            "queue_order_notifications": "QUEUE_ORDER_NOTIFICATIONS",
            "queue_stock_updates": "QUEUE_STOCK_UPDATES",
            "dead_letter_suffix": "DEAD_LETTER_SUFFIX",
            "max_delivery_attempts": "MAX_DELIVERY_ATTEMPTS",
            "redelivery_delay_seconds": "REDELIVERY_DELAY_SECONDS",
            "publish_timeout_seconds": "PUBLISH_TIMEOUT_SECONDS",
            "processed_order_retention": "PROCESSED_ORDER_RETENTION",
            "low_stock_threshold": "LOW_STOCK_THRESHOLD",
            "consumer_group": "KAFKA_CONSUMER_GROUP",
            "log_level": "LOG_LEVEL",
            "log_file": "LOG_FILE",
        }
        values = {field: env[var] for field, var in names.items() if env.get(var)}

        for field, var in (("dedupe_redeliveries", "DEDUPE_REDELIVERIES"), ("log_json", "LOG_JSON")):
            if env.get(var):
                values[field] = env[var].strip().lower() in _TRUE_VALUES

        return cls(**values)

    def dead_letter_topic(self, topic: str) -> str:
        """Name of the dead-letter topic for ``topic``."""
        return f"{topic}{self.dead_letter_suffix}"
