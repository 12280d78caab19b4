"""Kafka producer and at-least-once consumer shared by the services.

The consumer commits an offset only after the handler returns. A failed
delivery is sought back and its partition paused for the redelivery delay,
which plays the role of a queue visibility timeout. After
``max_delivery_attempts`` deliveries the raw message is copied to the
dead-letter topic and committed so the partition can move on.
"""

import time
from collections.abc import Callable
from typing import Optional, Protocol, Union

from confluent_kafka import Consumer, KafkaError, KafkaException, Producer, TopicPartition
from confluent_kafka.admin import AdminClient
from logging_utils import get_kafka_logger

from .config import PipelineConfig
from .errors import MalformedMessageError, TransientInfrastructureError
from .messages import AnyQueueMessage, QueueMessage, parse_message

logger = get_kafka_logger("retail-common")

MessageHandler = Callable[[AnyQueueMessage], None]

DEFAULT_CONSUMER_CONFIG = {
    "auto.offset.reset": "earliest",
    "enable.auto.commit": False,
    "session.timeout.ms": 30000,
    "max.poll.interval.ms": 300000,
}

STATUS_LOG_INTERVAL = 300


class MessagePublisher(Protocol):
    """Anything that can put a tagged message on a queue."""

    def publish(self, topic: str, message: QueueMessage, key: Optional[str] = None) -> None:
        """Publish ``message`` and return once the queue has accepted it."""
        ...


def check_kafka_connection(bootstrap_servers: str) -> bool:
    """Check if Kafka connection is available.

    Returns:
        bool: True if Kafka is accessible, False otherwise.
    """
    try:
        admin = AdminClient({"bootstrap.servers": bootstrap_servers})
        return bool(admin.list_topics(timeout=5))
    except Exception as e:
        logger.error(f"Kafka connection failed: {e}")
        return False


class QueueProducer:
    """Kafka producer that waits for broker acknowledgement of every publish.

    Attributes:
        _producer: The underlying Kafka producer instance.
    """

    def __init__(self, bootstrap_servers: str, client_id: str, publish_timeout: float = 5.0, acks: str = "all"):
        """Initialize the producer.

        Args:
            bootstrap_servers: Comma-separated list of Kafka broker addresses.
            client_id: Producer client ID.
            publish_timeout: Seconds to wait for the broker to acknowledge a message.
            acks: The number of acknowledgments the producer requires.
        """
        self._publish_timeout = publish_timeout
        self._producer = Producer(
            {
                "bootstrap.servers": bootstrap_servers,
                "client.id": client_id,
                "acks": acks,
                "message.timeout.ms": int(publish_timeout * 1000),
            }
        )

    @property
    def producer(self):
        """The underlying Kafka producer instance."""
        return self._producer

    def _delivery_callback(self, err, msg) -> None:
        if err:
            logger.error(f"Message delivery failed: {err}")
        else:
            logger.debug(f"Message delivered to {msg.topic()} [p:{msg.partition()}]")

    def publish(self, topic: str, message: QueueMessage, key: Optional[str] = None) -> None:
        """Publish a tagged message as UTF-8 JSON.

        Args:
            topic: Destination topic.
            message: Message to serialize.
            key: Optional partitioning key.

        Raises:
            TransientInfrastructureError: If the broker does not acknowledge the message.
        """
        self.send(topic, message.to_json().encode("utf-8"), key=key)

    def send(
        self,
        topic: str,
        value: bytes,
        key: Union[str, bytes, None] = None,
        headers: Optional[list[tuple[str, bytes]]] = None,
    ) -> None:
        """Send raw bytes and block until delivered or the publish timeout expires."""
        failures = []

        def on_delivery(err, msg):
            self._delivery_callback(err, msg)
            if err:
                failures.append(err)

        if isinstance(key, str):
            key = key.encode("utf-8")

        try:
            self._producer.produce(topic=topic, key=key, value=value, headers=headers, on_delivery=on_delivery)
        except (BufferError, KafkaException) as e:
            logger.warning(f"Could not enqueue message for {topic}: {e}")
            raise TransientInfrastructureError(f"Queue unavailable: {e}") from e

        remaining = self._producer.flush(self._publish_timeout)
        if remaining > 0:
            raise TransientInfrastructureError(f"{remaining} message(s) to {topic} not acknowledged in time")
        if failures:
            raise TransientInfrastructureError(f"Delivery to {topic} failed: {failures[0]}")

    def close(self) -> None:
        """Flush any pending messages."""
        remaining = self._producer.flush(self._publish_timeout)
        if remaining > 0:
            logger.warning(f"{remaining} messages still pending delivery")


class QueueConsumer:
    """At-least-once consumer with delayed redelivery and dead-lettering."""

    def __init__(self, config: PipelineConfig, group_id: str, dead_letters: QueueProducer):
        """Initialize the consumer.

        Args:
            config: Pipeline configuration (brokers and delivery policy).
            group_id: Consumer group ID.
            dead_letters: Producer used to copy exhausted messages to dead-letter topics.
        """
        logger.info(f"Initializing consumer | bootstrap_servers={config.bootstrap_servers} | group_id={group_id}")
        self.config = config
        self.dead_letters = dead_letters
        self.stats = {
            "messages_processed": 0,
            "errors": 0,
            "redeliveries": 0,
            "dead_lettered": 0,
            "start_time": time.time(),
        }
        self._attempts: dict[tuple[str, int, int], int] = {}
        self._paused: dict[tuple[str, int], tuple[TopicPartition, float]] = {}
        self._running = False
        self._closed = False

        consumer_config = DEFAULT_CONSUMER_CONFIG.copy()
        consumer_config.update({"bootstrap.servers": config.bootstrap_servers, "group.id": group_id})
        self.consumer = Consumer(consumer_config)

    def subscribe(self, topics: list[str]) -> None:
        """Subscribe to the specified Kafka topics."""
        logger.info(f"Subscribing to topics: {topics}")
        self.consumer.subscribe(topics)

    def process_messages(self, handler: MessageHandler) -> None:
        """Deliver messages to ``handler`` until ``stop`` is called.

        Args:
            handler: Called once per delivery with the parsed message. Raising
                from it triggers redelivery.
        """
        logger.info("Starting message processing loop")
        self._running = True
        last_status_log = time.time()
        try:
            while self._running:
                self.poll_once(handler)

                now = time.time()
                if now - last_status_log >= STATUS_LOG_INTERVAL:
                    self._log_status()
                    last_status_log = now
        except KeyboardInterrupt:
            logger.info("Shutting down consumer...")
        finally:
            self._log_status()
            self.close()

    def poll_once(self, handler: MessageHandler, timeout: float = 1.0) -> bool:
        """Poll for one message and deliver it.

        Returns:
            bool: True if a message was delivered (successfully or not).
        """
        self._resume_due_partitions()

        msg = self.consumer.poll(timeout=timeout)
        if msg is None:
            return False

        if msg.error():
            if msg.error().code() == KafkaError._PARTITION_EOF:
                logger.debug("Reached end of partition")
                return False
            self.stats["errors"] += 1
            if msg.error().fatal():
                raise KafkaException(msg.error())
            logger.error(f"Kafka error: {msg.error()}")
            return False

        self._deliver(msg, handler)
        return True

    def _deliver(self, msg, handler: MessageHandler) -> None:
        delivery = (msg.topic(), msg.partition(), msg.offset())
        attempt = self._attempts.get(delivery, 0) + 1
        log = logger.bind(topic=msg.topic(), partition=msg.partition(), offset=msg.offset(), attempt=attempt)

        try:
            message = parse_message(msg.value())
        except MalformedMessageError as e:
            self.stats["errors"] += 1
            log.error(f"Malformed message, dead-lettering: {e}")
            self._dead_letter(msg, attempt, e)
            return

        try:
            if message is None:
                log.debug("Skipping message with unknown type")
            else:
                handler(message)
        except Exception as e:
            self.stats["errors"] += 1
            if attempt >= self.config.max_delivery_attempts:
                log.error(f"Delivery failed after {attempt} attempts, dead-lettering: {e!r}")
                self._dead_letter(msg, attempt, e)
            else:
                log.warning(
                    f"Delivery attempt {attempt}/{self.config.max_delivery_attempts} failed, "
                    f"redelivering in {self.config.redelivery_delay_seconds}s: {e!r}"
                )
                self._attempts[delivery] = attempt
                self._redeliver(msg)
            return

        self._attempts.pop(delivery, None)
        self._commit(msg)
        self.stats["messages_processed"] += 1

    def _redeliver(self, msg) -> None:
        partition = TopicPartition(msg.topic(), msg.partition(), msg.offset())
        self.consumer.seek(partition)
        self.stats["redeliveries"] += 1
        if self.config.redelivery_delay_seconds > 0:
            self.consumer.pause([partition])
            resume_at = time.monotonic() + self.config.redelivery_delay_seconds
            self._paused[(msg.topic(), msg.partition())] = (partition, resume_at)

    def _resume_due_partitions(self) -> None:
        now = time.monotonic()
        due = [key for key, (_, resume_at) in self._paused.items() if resume_at <= now]
        for key in due:
            partition, _ = self._paused.pop(key)
            self.consumer.resume([partition])

    def _dead_letter(self, msg, attempts: int, error: Exception) -> None:
        topic = self.config.dead_letter_topic(msg.topic())
        headers = [
            ("x-delivery-attempts", str(attempts).encode("utf-8")),
            ("x-error", repr(error).encode("utf-8")),
            ("x-original-topic", msg.topic().encode("utf-8")),
            ("x-original-offset", str(msg.offset()).encode("utf-8")),
        ]
        try:
            self.dead_letters.send(topic, msg.value(), key=msg.key(), headers=headers)
        except TransientInfrastructureError as e:
            logger.error(f"Could not dead-letter message to {topic}, redelivering instead: {e}")
            self._redeliver(msg)
            return

        self._attempts.pop((msg.topic(), msg.partition(), msg.offset()), None)
        self._commit(msg)
        self.stats["dead_lettered"] += 1
        logger.warning(f"Message moved to {topic} | offset={msg.offset()} | attempts={attempts}")

    def _commit(self, msg) -> None:
        try:
            self.consumer.commit(message=msg, asynchronous=False)
        except KafkaException as e:
            # The message was handled; failing to commit only means it may be delivered again
            logger.warning(f"Offset commit failed for {msg.topic()}@{msg.offset()}: {e}")

    def _log_status(self) -> None:
        runtime = time.time() - self.stats["start_time"]
        msg_rate = self.stats["messages_processed"] / runtime if runtime > 0 else 0
        logger.info(
            f"Consumer status | messages_processed={self.stats['messages_processed']} | "
            f"errors={self.stats['errors']} | redeliveries={self.stats['redeliveries']} | "
            f"dead_lettered={self.stats['dead_lettered']} | messages_per_second={msg_rate:.2f}"
        )

    def stop(self) -> None:
        """Ask the processing loop to exit after the current poll."""
        self._running = False

    def close(self) -> None:
        """Close the consumer connection. Safe to call more than once."""
        self.stop()
        if self._closed:
            return
        self._closed = True
        self.consumer.close()
        logger.info("Consumer closed")
