from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import Admin, TeacherOrAdmin
from maxit_backend.schemas.common import APIResponse, MessageResponse, message, success
from maxit_backend.schemas.worker import QueueStatus, WorkerStatus
from maxit_backend.services.worker import WorkerService

router = APIRouter(prefix="/workers", tags=["workers"])


@router.get("/status", summary="Ask the workers for their current status")
def get_worker_status(
    _user: TeacherOrAdmin, worker_service: Annotated[WorkerService, Depends()]
) -> APIResponse[WorkerStatus]:
    return success(worker_service.get_status())


@router.get("/queue/status", summary="Get the queue connection state")
def get_queue_status(
    _user: Admin, worker_service: Annotated[WorkerService, Depends()]
) -> APIResponse[QueueStatus]:
    return success(worker_service.get_queue_status())


@router.post("/queue/reconnect", summary="Reconnect to the queue or resend pending submissions")
def reconnect_queue(
    _user: Admin, worker_service: Annotated[WorkerService, Depends()]
) -> APIResponse[MessageResponse]:
    return message(worker_service.reconnect())
