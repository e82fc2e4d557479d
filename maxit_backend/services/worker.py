import logging
from typing import Annotated

from fastapi import Depends
from sqlmodel import Session

from maxit_backend.constants import WORKER_STATUS_TIMEOUT
from maxit_backend.dependencies.common import DBSession
from maxit_backend.lib.common import utcnow
from maxit_backend.schemas.worker import QueueStatus, WorkerStatus
from maxit_backend.services.queue import QueueService, get_queue_service

logger = logging.getLogger(__name__)


class WorkerService:
    def __init__(
        self,
        db_session: DBSession,
        queue_service: Annotated[QueueService, Depends(get_queue_service)],
    ):
        self.db_session: Session = db_session
        self.queue_service = queue_service

    def get_status(self, timeout: float = WORKER_STATUS_TIMEOUT) -> WorkerStatus:
        return self.queue_service.wait_for_worker_status(timeout)

    def get_queue_status(self) -> QueueStatus:
        return QueueStatus(
            connected=self.queue_service.is_connected,
            pending_submissions=self.queue_service.count_pending(self.db_session),
            last_checked=utcnow(),
        )

    def reconnect(self) -> str:
        """Republish pending submissions, or restart the connection when it is down."""
        if not self.queue_service.is_connected:
            self.queue_service.reconnect()
            return "Reconnecting to the queue"

        sent = self.queue_service.retry_pending(self.db_session)
        return f"Queue connected, {sent} pending submissions republished"
