"""FastAPI entry point for the Fulfillment Service."""

import threading
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from logging_utils import get_logger, setup_service_logger
from retail_common.config import PipelineConfig
from retail_common.queue import QueueConsumer, QueueProducer, check_kafka_connection
from retail_common.tables import Tables, create_record_store

from .consumer import consume_orders, create_consumer
from .fulfillment import OrderFulfillment
from .producer import FulfillmentProducer

SERVICE_NAME = "fulfillment-service"

logger = get_logger(SERVICE_NAME)


class FulfillmentState:
    """Class to manage fulfillment service state."""

    def __init__(self):
        self.config: Optional[PipelineConfig] = None
        self.tables: Optional[Tables] = None
        self.producer: Optional[QueueProducer] = None
        self.consumer: Optional[QueueConsumer] = None
        self.fulfillment: Optional[OrderFulfillment] = None
        self.consumer_thread: Optional[threading.Thread] = None

    def start(self, config: PipelineConfig) -> None:
        """Connect to the store and queue and start consuming in a background thread."""
        self.config = config
        self.tables = Tables.open(config, create_record_store(config.record_store_url))
        self.producer = QueueProducer(
            config.bootstrap_servers, client_id=SERVICE_NAME, publish_timeout=config.publish_timeout_seconds
        )
        self.fulfillment = OrderFulfillment(
            self.tables,
            FulfillmentProducer(self.producer, config.queue_stock_updates, config.queue_order_notifications),
            config,
        )
        self.consumer = create_consumer(config, dead_letters=self.producer)
        self.consumer_thread = threading.Thread(
            target=consume_orders, args=(self.consumer, self.fulfillment), daemon=True
        )
        self.consumer_thread.start()
        logger.info("Consumer thread started")

    def stop(self) -> None:
        if self.consumer:
            self.consumer.stop()
        if self.consumer_thread:
            self.consumer_thread.join(timeout=10)
        if self.producer:
            self.producer.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    config = PipelineConfig.from_env()
    setup_service_logger(SERVICE_NAME, config.log_level, config.log_file, config.log_json)
    state.start(config)
    yield
    # Shutdown
    logger.info("Shutting down fulfillment service...")
    state.stop()


app = FastAPI(title="Fulfillment Service", lifespan=lifespan)
state = FulfillmentState()


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
def readiness_check():
    """Readiness check that verifies the Kafka connection and the record store."""
    if state.config is None or state.tables is None:
        return {"status": "not ready", "kafka": "disconnected", "store": "disconnected"}
    kafka_ok = check_kafka_connection(state.config.bootstrap_servers)
    store_ok = state.tables.store.ping()
    return {
        "status": "ready" if kafka_ok and store_ok else "not ready",
        "kafka": "connected" if kafka_ok else "disconnected",
        "store": "connected" if store_ok else "disconnected",
    }


@app.get("/stats")
async def consumer_stats():
    """Delivery counters of the order queue consumer."""
    if state.consumer is None:
        return {}
    return {k: v for k, v in state.consumer.stats.items() if k != "start_time"}
