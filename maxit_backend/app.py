import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from maxit_backend.constants import API_PREFIX, CORS_REGEX_WHITELIST, FRONTEND_URL
from maxit_backend.database import SessionLocal
from maxit_backend.exception_handlers import register_exception_handlers
from maxit_backend.logger import setup_rich_logger
from maxit_backend.routers import (
    access_control,
    auth,
    contests_management,
    groups,
    health,
    languages_management,
    student,
    submissions,
    tasks,
    tasks_management,
    users,
    workers,
)
from maxit_backend.services.queue import queue_service
from maxit_backend.workers.consumer import worker_response_consumer
from maxit_backend.workers.publisher import worker_publisher

setup_rich_logger()
logger = logging.getLogger(__name__)


def on_publisher_ready():
    """Ask the workers for their languages and resend what piled up while disconnected."""
    queue_service.publish_handshake()
    with SessionLocal() as db_session:
        queue_service.retry_pending(db_session)


def on_publish_failed(message_id: str | None):
    with SessionLocal() as db_session:
        queue_service.mark_unsent(db_session, message_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _event_loop = asyncio.get_event_loop()
    queue_service.attach_consumer(worker_response_consumer)
    worker_publisher.ready_callbacks.append(on_publisher_ready)
    worker_publisher.failed_callbacks.append(on_publish_failed)

    worker_response_consumer.run(event_loop=_event_loop)
    worker_publisher.run(event_loop=_event_loop)

    yield

    worker_publisher.stop()
    worker_response_consumer.stop()
    worker_publisher.ready_callbacks.remove(on_publisher_ready)
    worker_publisher.failed_callbacks.remove(on_publish_failed)
    queue_service.consumers.remove(worker_response_consumer)


app = FastAPI(title="Maxit Backend", lifespan=lifespan, separate_input_output_schemas=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_origin_regex=CORS_REGEX_WHITELIST,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for api_router in (
    health.router,
    auth.router,
    users.router,
    groups.router,
    tasks.router,
    tasks_management.router,
    contests_management.router,
    access_control.router,
    languages_management.router,
    student.router,
    submissions.router,
    workers.router,
):
    app.include_router(api_router, prefix=API_PREFIX)

# Name OpenAPI operations after their handler functions
for route in app.routes:
    if isinstance(route, APIRoute):
        route.operation_id = route.name
