"""FastAPI server implementation for the Notification Service."""

import threading
from collections import OrderedDict, deque
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from logging_utils import get_logger, setup_service_logger
from retail_common.config import PipelineConfig
from retail_common.messages import StockUpdatedMessage
from retail_common.queue import QueueConsumer, QueueProducer, check_kafka_connection

from .consumer import create_consumer
from .handler import LoggingStockSubscriber, LowStockAlertSubscriber, StockNotificationSink
from .schemas import StockAlert

SERVICE_NAME = "notification-service"
HISTORY_SIZE = 500

logger = get_logger(SERVICE_NAME)


class NotificationState:
    """Class to manage notification service state.

    Also subscribes to the sink to keep the most recent stock updates and
    alerts in memory for inspection.
    """

    def __init__(self, history_size: int = HISTORY_SIZE):
        """Initialize notification state."""
        self.config: Optional[PipelineConfig] = None
        self.consumer: Optional[QueueConsumer] = None
        self.producer: Optional[QueueProducer] = None
        self.sink: Optional[StockNotificationSink] = None
        self.consumer_thread: Optional[threading.Thread] = None
        self._updates: deque[StockUpdatedMessage] = deque(maxlen=history_size)
        self._history_size = history_size
        self._alerts: OrderedDict[str, StockAlert] = OrderedDict()
        self._lock = threading.Lock()

    def build_sink(self, config: PipelineConfig) -> StockNotificationSink:
        """Wire the sink with logging, low-stock alerting and history subscribers."""
        self.config = config
        self.sink = StockNotificationSink(
            [
                LoggingStockSubscriber(),
                LowStockAlertSubscriber(config.low_stock_threshold, self.store_alert),
                self,
            ]
        )
        return self.sink

    def on_stock_updated(self, message: StockUpdatedMessage) -> None:
        with self._lock:
            self._updates.append(message)

    def store_alert(self, alert: StockAlert) -> None:
        """Keep an alert, dropping the oldest once the history is full."""
        with self._lock:
            self._alerts[alert.alert_id] = alert
            while len(self._alerts) > self._history_size:
                self._alerts.popitem(last=False)

    def list_updates(self, product_id: Optional[str] = None) -> list[StockUpdatedMessage]:
        """Recent stock updates, newest first, optionally for one product."""
        with self._lock:
            updates = list(self._updates)
        if product_id:
            updates = [u for u in updates if u.product_id == product_id]
        return list(reversed(updates))

    def get_alert(self, alert_id: str) -> Optional[StockAlert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def list_alerts(self, product_id: Optional[str] = None) -> list[StockAlert]:
        with self._lock:
            alerts = list(self._alerts.values())
        if product_id:
            alerts = [a for a in alerts if a.product_id == product_id]
        return alerts


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifecycle of the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    config = PipelineConfig.from_env()
    setup_service_logger(SERVICE_NAME, config.log_level, config.log_file, config.log_json)

    sink = state.build_sink(config)
    state.producer = QueueProducer(
        config.bootstrap_servers, client_id=SERVICE_NAME, publish_timeout=config.publish_timeout_seconds
    )
    state.consumer = create_consumer(config, dead_letters=state.producer)

    # Start consumer in background thread
    state.consumer_thread = threading.Thread(target=state.consumer.process_messages, args=(sink.handle,), daemon=True)
    state.consumer_thread.start()
    logger.info("Consumer thread started")

    yield  # FastAPI will run the application here

    # Shutdown
    logger.info("Shutting down notification service...")
    state.consumer.stop()
    state.consumer_thread.join(timeout=10)
    state.producer.close()
    logger.info("Shutdown complete")


# Initialize FastAPI app and state
app = FastAPI(title="Notification Service", lifespan=lifespan)
state = NotificationState()


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
def readiness_check():
    """Check if the service is ready to handle requests."""
    if state.config is None:
        return {"status": "not ready", "kafka": "disconnected"}
    if check_kafka_connection(state.config.bootstrap_servers):
        return {"status": "ready", "kafka": "connected"}
    return {"status": "not ready", "kafka": "disconnected"}


@app.get("/stats")
async def consumer_stats():
    """Delivery counters of the notification consumer."""
    if state.consumer is None:
        return {}
    return {k: v for k, v in state.consumer.stats.items() if k != "start_time"}


@app.get("/stock-updates", response_model=list[StockUpdatedMessage])
async def list_stock_updates(product_id: Optional[str] = None):
    """List recent stock updates, newest first.

    Args:
        product_id: Optional product ID to filter by

    Returns:
        list[StockUpdatedMessage]: Matching stock updates
    """
    return state.list_updates(product_id)


@app.get("/alerts/{alert_id}", response_model=StockAlert)
async def get_alert(alert_id: str):
    """Get a specific low-stock alert by ID.

    Raises:
        HTTPException: If the alert is not found
    """
    alert = state.get_alert(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert


@app.get("/alerts", response_model=list[StockAlert])
async def list_alerts(product_id: Optional[str] = None):
    """List low-stock alerts, optionally filtered by product."""
    return state.list_alerts(product_id)
