import logging

import pika
from pika.exchange_type import ExchangeType
from pika.spec import Basic

from maxit_backend.constants import (
    AMQP_CONN_NAME,
    AMQP_EXCHANGE_NAME,
    AMQP_RESPONSE_QUEUE_NAME,
    AMQP_URL,
)
from maxit_backend.database import SessionLocal
from maxit_backend.lib.amqp import AsyncConsumer
from maxit_backend.schemas.worker import (
    HandshakeResponsePayload,
    MessageType,
    QueueResponseMessage,
    StatusResponsePayload,
)
from maxit_backend.services.language import LanguageService
from maxit_backend.services.queue import QueueService, queue_service
from maxit_backend.services.submission import SubmissionService

logger = logging.getLogger(__name__)


class WorkerResponseConsumer(AsyncConsumer):
    """Handles worker replies: task results, status reports and handshakes."""

    def __init__(self, queue_service: QueueService):
        super().__init__(
            AMQP_URL,
            AMQP_EXCHANGE_NAME,
            ExchangeType.direct,
            AMQP_RESPONSE_QUEUE_NAME,
            f"{AMQP_CONN_NAME}::consumer",
        )
        self.queue_service = queue_service

    def message_callback(
        self, _basic_deliver: Basic.Deliver, _properties: pika.BasicProperties, body: bytes
    ):
        self.handle(QueueResponseMessage.model_validate_json(body))

    def handle(self, message: QueueResponseMessage):
        match message.type:
            case MessageType.TASK:
                with SessionLocal() as db_session:
                    SubmissionService(db_session, self.queue_service).handle_worker_result(message)

            case MessageType.STATUS:
                if not message.ok:
                    logger.warning(f"Worker status request failed: {message.payload}")
                    return
                self.queue_service.update_worker_status(
                    StatusResponsePayload.model_validate(message.payload)
                )

            case MessageType.HANDSHAKE:
                if not message.ok:
                    logger.warning(f"Worker handshake failed: {message.payload}")
                    return
                payload = HandshakeResponsePayload.model_validate(message.payload)
                with SessionLocal() as db_session:
                    LanguageService(db_session).sync_with_worker(payload.languages)

            case _:
                logger.warning(f"Unknown message type '{message.type}' ({message.message_id})")


worker_response_consumer = WorkerResponseConsumer(queue_service)
