import logging
import threading
import uuid

from sqlmodel import Session, col, func, select

from maxit_backend.constants import AMQP_RESPONSE_QUEUE_NAME, MINIO_BUCKET
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.lib.amqp import AsyncConsumer, AsyncPublisher
from maxit_backend.lib.common import utcnow
from maxit_backend.models.submission import Submission, SubmissionStatus
from maxit_backend.schemas.worker import (
    FileLocation,
    MessageType,
    QueueMessage,
    QueueTestCase,
    StatusResponsePayload,
    TaskPayload,
    WorkerStatus,
)
from maxit_backend.workers.publisher import worker_publisher

logger = logging.getLogger(__name__)

PENDING_SUBMISSIONS_BATCH_LIMIT = 100

_WORKER_STATES = {"0": "idle", "idle": "idle", "1": "busy", "busy": "busy"}


def normalize_worker_state(value: str) -> str:
    return _WORKER_STATES.get(str(value).strip().lower(), "invalid")


def build_task_message(submission: Submission) -> QueueMessage:
    """The queue message asking a worker to evaluate `submission`. The message id is the submission id."""
    test_cases = [
        QueueTestCase(
            order=test_case.order,
            input_file=FileLocation(bucket=MINIO_BUCKET, path=test_case.input_key),
            expected_output=FileLocation(bucket=MINIO_BUCKET, path=test_case.output_key),
            time_limit_ms=test_case.time_limit,
            memory_limit_kb=test_case.memory_limit,
        )
        for test_case in submission.task.test_cases
    ]
    return QueueMessage(
        message_id=str(submission.id),
        type=MessageType.TASK,
        payload=TaskPayload(
            order=submission.order,
            language_type=submission.language.type,
            language_version=submission.language.version,
            submission_file=FileLocation(bucket=MINIO_BUCKET, path=submission.file_key),
            test_cases=test_cases,
        ),
    )


class QueueService:
    """Publishes to the worker queue and keeps the last worker status reported back.

    Request threads wait for a fresh status on `_status_condition`; the response
    consumer notifies it from the event loop thread.
    """

    def __init__(self, publisher: AsyncPublisher):
        self.publisher = publisher
        self.consumers: list[AsyncConsumer] = []
        self._status_condition = threading.Condition()
        self._worker_status: WorkerStatus | None = None

    @property
    def is_connected(self) -> bool:
        return self.publisher.is_ready

    @property
    def last_worker_status(self) -> WorkerStatus | None:
        with self._status_condition:
            return self._worker_status

    def publish(self, message: QueueMessage) -> bool:
        published = self.publisher.publish(
            message.model_dump_json(),
            reply_to=AMQP_RESPONSE_QUEUE_NAME,
            message_id=message.message_id,
        )
        if not published:
            logger.warning(
                f"Queue unavailable, '{message.type}' message {message.message_id} not sent"
            )
        return published

    def publish_submission(self, db_session: Session, submission: Submission) -> bool:
        """Send `submission` for evaluation.

        The new status is committed before the message goes out, so a failure the
        publisher reports later (see `mark_unsent`) is never overwritten by this commit.
        A publish refused outright reverts the status at once.
        """
        message = build_task_message(submission)
        self._set_status(
            db_session,
            submission,
            SubmissionStatus.SENT_FOR_EVALUATION,
            "Submission sent for evaluation",
        )
        if self.publish(message):
            return True

        self._set_status(db_session, submission, SubmissionStatus.RECEIVED, "Waiting for the queue")
        return False

    def mark_unsent(self, db_session: Session, message_id: str | None) -> bool:
        """Put a submission whose task message never reached the broker back to `received`.

        Messages that are not about a submission are ignored. `retry_pending` picks the
        submission up again on the next reconnect.
        """
        if message_id is None or not message_id.isdigit():
            return False
        submission = db_session.get(Submission, int(message_id))
        if submission is None or submission.status != SubmissionStatus.SENT_FOR_EVALUATION:
            return False

        self._set_status(db_session, submission, SubmissionStatus.RECEIVED, "Queue delivery failed")
        logger.warning(f"Submission {submission.id} was not delivered to the queue")
        return True

    @staticmethod
    def _set_status(
        db_session: Session, submission: Submission, status: SubmissionStatus, status_message: str
    ):
        submission.status = status
        submission.status_message = status_message
        db_session.add(submission)
        db_session.commit()

    def publish_handshake(self) -> bool:
        return self.publish(QueueMessage(message_id=str(uuid.uuid4()), type=MessageType.HANDSHAKE))

    def publish_status_request(self) -> bool:
        return self.publish(QueueMessage(message_id=str(uuid.uuid4()), type=MessageType.STATUS))

    def update_worker_status(self, payload: StatusResponsePayload):
        status = WorkerStatus(
            busy_workers=payload.busy_workers,
            total_workers=payload.total_workers,
            worker_status={
                worker: normalize_worker_state(state)
                for worker, state in payload.worker_status.items()
            },
            status_time=utcnow(),
        )
        with self._status_condition:
            self._worker_status = status
            self._status_condition.notify_all()

    def wait_for_worker_status(self, timeout: float) -> WorkerStatus:
        """Ask the workers for their status and block until they answer or `timeout` runs out."""
        requested_at = utcnow()
        with self._status_condition:
            if not self.publish_status_request():
                raise ServiceError(ErrorCode.QUEUE_NOT_CONNECTED)
            is_fresh = self._status_condition.wait_for(
                lambda: self._worker_status is not None
                and self._worker_status.status_time >= requested_at,
                timeout=timeout,
            )
            if not is_fresh or self._worker_status is None:
                raise ServiceError(ErrorCode.TIMEOUT, "Workers did not report their status in time")
            return self._worker_status

    def count_pending(self, db_session: Session) -> int:
        statement = (
            select(func.count())
            .select_from(Submission)
            .where(Submission.status == SubmissionStatus.RECEIVED)
        )
        return db_session.exec(statement).one()

    def retry_pending(self, db_session: Session) -> int:
        """Republish submissions still waiting in `received`. Returns how many were sent."""
        pending = db_session.exec(
            select(Submission)
            .where(Submission.status == SubmissionStatus.RECEIVED)
            .order_by(col(Submission.submitted_at), col(Submission.id))
            .limit(PENDING_SUBMISSIONS_BATCH_LIMIT)
        ).all()

        sent = 0
        for submission in pending:
            if not self.publish_submission(db_session, submission):
                break
            sent += 1

        if sent:
            logger.info(f"Republished {sent} pending submissions")
        return sent

    def attach_consumer(self, consumer: AsyncConsumer):
        """Register a consumer to be restarted together with the publisher."""
        self.consumers.append(consumer)

    def reconnect(self):
        logger.info("Restarting the worker queue connections")
        self.publisher.restart()
        for consumer in self.consumers:
            consumer.restart()


queue_service = QueueService(worker_publisher)


def get_queue_service() -> QueueService:
    return queue_service
