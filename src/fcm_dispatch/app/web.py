"""aiohttp application exposing the dispatcher and scheduler over HTTP.

Handlers validate request bodies, translate them into NotificationRequest
batches, and render the dispatcher's results. Per-item provider failures are
part of a 200 response; only malformed input is answered with 400.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Final
from uuid import uuid4

from aiohttp import web
from pydantic import BaseModel, ValidationError

from fcm_dispatch.__about__ import __version__
from fcm_dispatch.app.presets import (
    BULK_TYPE_CODE,
    NOTIFICATION_PRESETS,
    SCHEDULED_TYPE_CODE,
    get_preset,
    notification_fields,
)
from fcm_dispatch.app.schemas import (
    BulkSendBody,
    NotificationTypeBody,
    ScheduleBody,
    SendBody,
    TopicSendBody,
    render_ack,
)
from fcm_dispatch.core.config import MainConfig
from fcm_dispatch.core.dispatcher import Dispatcher
from fcm_dispatch.core.scheduler import DispatchScheduler
from fcm_dispatch.errors import BatchValidationError, RequestValidationError
from fcm_dispatch.types import DelayedDispatch, DispatchOutcome, NotificationRequest, RecipientKind
from fcm_dispatch.utils.logging import (
    clear_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)

__all__ = [
    "CONFIG_KEY",
    "CORRELATION_ID_HEADER",
    "DISPATCHER_KEY",
    "SCHEDULER_KEY",
    "create_app",
]

CORRELATION_ID_HEADER: Final[str] = "X-Correlation-ID"

DISPATCHER_KEY: Final = web.AppKey("dispatcher", Dispatcher)
SCHEDULER_KEY: Final = web.AppKey("scheduler", DispatchScheduler)
CONFIG_KEY: Final = web.AppKey("config", MainConfig)
STARTED_AT_KEY: Final = web.AppKey("started_at", float)

type Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

logger = get_logger(__name__)


@web.middleware
async def correlation_id_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Tag every log line of a request with the caller's or a fresh correlation ID."""
    correlation_id = request.headers.get(CORRELATION_ID_HEADER) or uuid4().hex
    set_correlation_id(correlation_id)
    try:
        response = await handler(request)
    finally:
        clear_correlation_id()
    response.headers[CORRELATION_ID_HEADER] = correlation_id
    return response


@web.middleware
async def validation_error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Answer request and batch validation failures with a 400 JSON body."""
    try:
        return await handler(request)
    except RequestValidationError as exc:
        log_with_context(
            logger,
            logging.INFO,
            "Rejected invalid request",
            extra={"path": request.path, "error_message": str(exc)},
        )
        return web.json_response({"message": str(exc), "errors": exc.errors}, status=400)
    except BatchValidationError as exc:
        log_with_context(
            logger,
            logging.INFO,
            "Rejected invalid batch",
            extra={"path": request.path, "error_message": str(exc)},
        )
        return web.json_response({"message": str(exc)}, status=400)


async def _read_body[BodyT: BaseModel](request: web.Request, model: type[BodyT]) -> BodyT:
    """Parse and validate a JSON request body.

    Raises:
        RequestValidationError: If the body is not JSON or fails validation
    """
    try:
        payload: object = await request.json()  # pyright: ignore[reportAny]  # JSON boundary
    except ValueError as exc:
        msg = "Request body must be valid JSON"
        raise RequestValidationError(msg, errors=[{"field": "body", "message": msg}]) from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError.from_pydantic(exc, subject="body") from exc


async def _dispatch_one(request: web.Request, notification: NotificationRequest) -> DispatchOutcome:
    result = await request.app[DISPATCHER_KEY].dispatch([notification], concurrency=1)
    return result.outcomes[0]


def _outcome_message(outcome: DispatchOutcome, success: str) -> str:
    if outcome.is_sent:
        return success
    return f"Notification failed: {outcome.error_message}"


async def handle_index(_request: web.Request) -> web.Response:
    return web.Response(text="FCM Notification Service Running")


async def handle_send(request: web.Request) -> web.Response:
    body = await _read_body(request, SendBody)
    notification = NotificationRequest.build(
        body.token,
        body.title,
        body.description,
        attributes=body.attributes(),
    )
    outcome = await _dispatch_one(request, notification)
    return web.json_response(
        {
            "message": _outcome_message(outcome, "Notification sent successfully"),
            "outcome": outcome.to_dict(),
        }
    )


async def handle_topic(request: web.Request) -> web.Response:
    body = await _read_body(request, TopicSendBody)
    notification = NotificationRequest.build(
        body.topic,
        body.title,
        body.description,
        attributes=body.data,
        recipient_kind=RecipientKind.TOPIC,
    )
    outcome = await _dispatch_one(request, notification)
    return web.json_response(
        {
            "message": _outcome_message(outcome, f"Notification sent to topic '{notification.recipient}'"),
            "outcome": outcome.to_dict(),
        }
    )


async def handle_bulk(request: web.Request) -> web.Response:
    """Send one notification per token through the bounded worker pool."""
    body = await _read_body(request, BulkSendBody)
    server = request.app[CONFIG_KEY].server
    title = body.title or server.default_bulk_title
    description = body.description or server.default_bulk_body
    total = len(body.tokens)

    notifications: list[NotificationRequest] = []
    for position, token in enumerate(body.tokens, start=1):
        item_title = f"{title} ({position}/{total})" if body.numbered else title
        item_body = f"{description} - Message {position}" if body.numbered else description
        notifications.append(
            NotificationRequest.build(
                token,
                item_title,
                item_body,
                attributes={**body.data, **notification_fields(BULK_TYPE_CODE, offset=position - 1)},
            )
        )

    dispatcher = request.app[DISPATCHER_KEY]
    start = time.perf_counter()
    result = await dispatcher.dispatch(notifications, concurrency=body.concurrency)

    log_with_context(
        logger,
        logging.INFO if result.failed_count == 0 else logging.WARNING,
        "Bulk send completed",
        extra={
            "total": result.total,
            "sent_count": result.sent_count,
            "failed_count": result.failed_count,
            "concurrency": dispatcher.effective_concurrency(body.concurrency),
            "duration_ms": (time.perf_counter() - start) * 1000.0,
        },
    )
    return web.json_response({"message": "Bulk send completed", **result.to_dict()})


async def handle_schedule(request: web.Request) -> web.Response:
    body = await _read_body(request, ScheduleBody)
    notification = NotificationRequest.build(
        body.recipient,
        body.title,
        body.description,
        attributes={**body.data, **notification_fields(SCHEDULED_TYPE_CODE)},
        recipient_kind=body.recipient_kind,
    )
    delayed = DelayedDispatch.build(notification, body.delay_seconds)
    handle = request.app[SCHEDULER_KEY].schedule(delayed)
    ack = handle.ack
    return web.json_response(
        {
            "message": f"Notification scheduled to be sent in {ack.delay_seconds:g} seconds",
            **render_ack(ack),
        },
        status=202,
    )


async def handle_cancel_schedule(request: web.Request) -> web.Response:
    schedule_id = request.match_info["schedule_id"]
    handle = request.app[SCHEDULER_KEY].get(schedule_id)
    if handle is None:
        return web.json_response(
            {"message": f"Unknown or finished schedule '{schedule_id}'"},
            status=404,
        )
    if not handle.cancel():
        return web.json_response(
            {
                "message": "Scheduled notification has already started",
                "scheduleId": schedule_id,
                "state": handle.state.value,
            },
            status=409,
        )
    return web.json_response({"cancelled": True, "scheduleId": schedule_id})


async def handle_notification_type(request: web.Request) -> web.Response:
    body = await _read_body(request, NotificationTypeBody)
    preset = get_preset(body.type)
    if preset is None:
        return web.json_response(
            {
                "message": "Invalid notification type",
                "availableTypes": list(NOTIFICATION_PRESETS),
            },
            status=400,
        )

    notification = NotificationRequest.build(
        body.token,
        preset.title,
        preset.description,
        attributes=preset.attributes(),
    )
    outcome = await _dispatch_one(request, notification)
    return web.json_response(
        {
            "message": _outcome_message(outcome, f"{body.type} notification sent successfully"),
            "payload": {
                "title": preset.title,
                "description": preset.description,
                "type": preset.type_code,
            },
            "additionalData": preset.data,
            "outcome": outcome.to_dict(),
        }
    )


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "uptime": time.monotonic() - request.app[STARTED_AT_KEY],
            "version": __version__,
            "environment": request.app[CONFIG_KEY].server.environment,
            "pendingSchedules": request.app[SCHEDULER_KEY].pending_count,
        }
    )


async def _shutdown_scheduler(app: web.Application) -> None:
    await app[SCHEDULER_KEY].shutdown()


def create_app(
    dispatcher: Dispatcher,
    scheduler: DispatchScheduler,
    *,
    config: MainConfig,
) -> web.Application:
    """Build the aiohttp application.

    Args:
        dispatcher: Dispatcher used for every send
        scheduler: Scheduler backing the delayed-send routes
        config: Application configuration (server section is used here)

    Returns:
        Application with all routes registered and scheduler shutdown on cleanup
    """
    app = web.Application(middlewares=[correlation_id_middleware, validation_error_middleware])
    app[DISPATCHER_KEY] = dispatcher
    app[SCHEDULER_KEY] = scheduler
    app[CONFIG_KEY] = config
    app[STARTED_AT_KEY] = time.monotonic()

    _ = app.router.add_get("/", handle_index)
    _ = app.router.add_post("/api/fcm/send", handle_send)
    _ = app.router.add_post("/api/fcm/topic", handle_topic)
    _ = app.router.add_post("/api/fcm/bulk", handle_bulk)
    _ = app.router.add_post("/api/fcm/schedule", handle_schedule)
    _ = app.router.add_delete("/api/fcm/schedule/{schedule_id}", handle_cancel_schedule)
    _ = app.router.add_post("/api/fcm/notification-types", handle_notification_type)
    _ = app.router.add_get("/api/health", handle_health)

    app.on_cleanup.append(_shutdown_scheduler)
    return app
