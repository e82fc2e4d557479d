import logging
from collections.abc import Callable

from pika.exchange_type import ExchangeType

from maxit_backend.constants import (
    AMQP_CONN_NAME,
    AMQP_EXCHANGE_NAME,
    AMQP_URL,
    AMQP_WORKER_QUEUE_NAME,
)
from maxit_backend.lib.amqp import AsyncPublisher

logger = logging.getLogger(__name__)


class WorkerPublisher(AsyncPublisher):
    """Publishes task, handshake and status requests to the worker queue."""

    def __init__(self):
        super().__init__(
            AMQP_URL,
            AMQP_EXCHANGE_NAME,
            ExchangeType.direct,
            AMQP_WORKER_QUEUE_NAME,
            f"{AMQP_CONN_NAME}::publisher",
        )
        self.ready_callbacks: list[Callable[[], None]] = []
        self.failed_callbacks: list[Callable[[str | None], None]] = []

    def on_ready(self):
        super().on_ready()
        logger.info(f"[{self.conn_name}] Ready to publish to '{self.queue_name}'")
        for callback in self.ready_callbacks:
            try:
                callback()
            except Exception:
                logger.exception(f"[{self.conn_name}] Ready callback failed")

    def on_publish_failed(self, message_id: str | None):
        for callback in self.failed_callbacks:
            try:
                callback(message_id)
            except Exception:
                logger.exception(
                    f"[{self.conn_name}] Publish failure callback failed for {message_id}"
                )


worker_publisher = WorkerPublisher()
