"""Order Service Server."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from logging_utils import get_logger, setup_service_logger
from retail_common.config import PipelineConfig
from retail_common.errors import RetailError
from retail_common.queue import MessagePublisher, QueueProducer, check_kafka_connection
from retail_common.store import RecordStore
from retail_common.tables import Tables, create_record_store

from .intake import OrderIntakeService
from .producer import OrderProducer
from .queries import OrderQueries
from .schemas import OrderCreate, OrderStatusUpdate, OrderView
from .status import OrderStatusService

SERVICE_NAME = "order-service"

logger = get_logger(SERVICE_NAME)


class OrderServiceState:
    """Class to manage order service state."""

    def __init__(self):
        """Initialize empty state; ``configure`` wires the services."""
        self.config: Optional[PipelineConfig] = None
        self.tables: Optional[Tables] = None
        self.queue_producer: Optional[QueueProducer] = None
        self.intake: Optional[OrderIntakeService] = None
        self.status: Optional[OrderStatusService] = None
        self.queries: Optional[OrderQueries] = None

    def configure(self, config: PipelineConfig, store: RecordStore, publisher: MessagePublisher) -> None:
        """Build the order services on top of a record store and queue publisher.

        Args:
            config: Pipeline configuration.
            store: Record store holding orders, products and customers.
            publisher: Publisher for the order queue.
        """
        self.config = config
        self.tables = Tables.open(config, store)
        producer = OrderProducer(publisher, config.queue_order_notifications)
        self.intake = OrderIntakeService(self.tables, producer)
        self.status = OrderStatusService(self.tables, producer)
        self.queries = OrderQueries(self.tables)

    def require(self) -> "OrderServiceState":
        if self.intake is None:
            raise HTTPException(status_code=503, detail="Service unavailable")
        return self


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifecycle of the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    if state.config is None:
        config = PipelineConfig.from_env()
        setup_service_logger(SERVICE_NAME, config.log_level, config.log_file, config.log_json)
        state.queue_producer = QueueProducer(
            config.bootstrap_servers, client_id=SERVICE_NAME, publish_timeout=config.publish_timeout_seconds
        )
        state.configure(config, create_record_store(config.record_store_url), state.queue_producer)
        logger.info(f"Order service started | orders_topic={config.queue_order_notifications}")

    yield

    logger.info("Shutting down order service...")
    if state.queue_producer:
        state.queue_producer.close()


app = FastAPI(title="Order Service", lifespan=lifespan)
router = APIRouter()
state = OrderServiceState()


@app.exception_handler(RetailError)
async def retail_error_handler(request: Request, exc: RetailError) -> JSONResponse:
    """Map pipeline errors to HTTP responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@router.get("/health")
def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/ready")
def readiness_check():
    """Check if the service is ready to accept traffic.

    Returns:
        dict: Service readiness plus Kafka and record store status.
    """
    if state.config is None or state.tables is None:
        return {"status": "not_ready", "kafka": False, "store": False}
    kafka_ok = check_kafka_connection(state.config.bootstrap_servers)
    store_ok = state.tables.store.ping()
    return {"status": "ready" if kafka_ok and store_ok else "not_ready", "kafka": kafka_ok, "store": store_ok}


@router.post("/orders", response_model=OrderView, status_code=201)
def create_order(order: OrderCreate):
    """Validate an order and queue it for fulfillment.

    Args:
        order (OrderCreate): Customer, product and quantity.

    Returns:
        OrderView: The accepted order with status ``Queued``.
    """
    logger.info(f"Received new order: {order}")
    return state.require().intake.create_order(order.customer_id, order.product_id, order.quantity)


@router.get("/orders", response_model=list[OrderView])
def list_orders():
    """List persisted orders, newest first."""
    return state.require().queries.list_orders()


@router.get("/orders/{order_id}", response_model=OrderView)
def get_order(order_id: str):
    """Get a specific order by ID.

    Raises:
        NotFoundError: If the order does not exist (404).
    """
    return state.require().queries.get_order(order_id)


@router.api_route("/orders/{order_id}/status", methods=["PATCH", "PUT", "POST"], response_model=OrderView)
def update_order_status(order_id: str, update: OrderStatusUpdate):
    """Set the status of an existing order.

    Returns:
        OrderView: The updated order.
    """
    return state.require().status.update_status(order_id, update.status)


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(order_id: str):
    """Delete an order record."""
    state.require().queries.delete_order(order_id)
    return Response(status_code=204)


app.include_router(router)
