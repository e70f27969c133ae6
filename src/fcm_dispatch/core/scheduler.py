"""Cancellable delayed dispatch.

A DispatchScheduler turns a DelayedDispatch into an asyncio task that sleeps for
the (clamped) delay and then submits the request to the Dispatcher as a batch of
one. Scheduling returns immediately with a ScheduledDispatch handle carrying the
acknowledgment and a best-effort ``cancel()``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from fcm_dispatch.core.dispatcher import Dispatcher
from fcm_dispatch.types import BatchResult, DelayedDispatch, ScheduleAck
from fcm_dispatch.utils.logging import get_logger, log_with_context

__all__ = ["DispatchScheduler", "ScheduleState", "ScheduledDispatch"]

type ScheduleIDFactory = Callable[[], str]


class ScheduleState(Enum):
    """Lifecycle of a scheduled dispatch."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScheduledDispatch:
    """Handle for a delayed dispatch that has been scheduled."""

    def __init__(
        self,
        ack: ScheduleAck,
        delayed: DelayedDispatch,
        dispatcher: Dispatcher,
        logger_obj: logging.Logger,
    ) -> None:
        self.ack: ScheduleAck = ack
        self._delayed: DelayedDispatch = delayed
        self._dispatcher: Dispatcher = dispatcher
        self._logger: logging.Logger = logger_obj
        self._state: ScheduleState = ScheduleState.PENDING
        self._task: asyncio.Task[BatchResult] = asyncio.create_task(
            self._run(),
            name=f"scheduled-dispatch-{ack.schedule_id}",
        )
        self._task.add_done_callback(self._log_unexpected_failure)

    @property
    def schedule_id(self) -> str:
        return self.ack.schedule_id

    @property
    def state(self) -> ScheduleState:
        return self._state

    def cancel(self) -> bool:
        """Prevent the send if it has not started yet.

        Returns:
            True if the dispatch was cancelled, False if it had already started
            or finished
        """
        if self._state is not ScheduleState.PENDING:
            return False
        self._state = ScheduleState.CANCELLED
        _ = self._task.cancel()
        log_with_context(
            self._logger,
            logging.INFO,
            "Scheduled notification cancelled",
            extra={"schedule_id": self.schedule_id, "recipient": self.ack.recipient},
        )
        return True

    async def result(self) -> BatchResult:
        """Wait for the dispatch to finish.

        Raises:
            asyncio.CancelledError: If the dispatch was cancelled
        """
        return await asyncio.shield(self._task)

    def add_done_callback(self, callback: Callable[[ScheduledDispatch], None]) -> None:
        self._task.add_done_callback(lambda _task: callback(self))

    def _log_unexpected_failure(self, task: asyncio.Task[BatchResult]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Scheduled notification failed unexpectedly",
                extra={
                    "schedule_id": self.schedule_id,
                    "error_message": str(exc),
                    "exception_type": type(exc).__name__,
                },
            )

    async def _run(self) -> BatchResult:
        await asyncio.sleep(self.ack.delay_seconds)
        self._state = ScheduleState.RUNNING
        try:
            result = await self._dispatcher.dispatch([self._delayed.request], concurrency=1)
        finally:
            self._state = ScheduleState.COMPLETED

        outcome = result.outcomes[0]
        log_with_context(
            self._logger,
            logging.INFO if outcome.is_sent else logging.WARNING,
            "Scheduled notification dispatched",
            extra={
                "schedule_id": self.schedule_id,
                "recipient": outcome.recipient,
                "status": outcome.status.value,
                "attempts": outcome.attempts,
                "error_message": outcome.error_message,
            },
        )
        return result


class DispatchScheduler:
    """Schedule delayed dispatches with clamped delays and cancellation handles."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        min_delay_seconds: float = 1.0,
        max_delay_seconds: float = 60.0,
        schedule_id_factory: ScheduleIDFactory | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        if min_delay_seconds < 0:
            msg = "min_delay_seconds must not be negative"
            raise ValueError(msg)
        if max_delay_seconds < min_delay_seconds:
            msg = "max_delay_seconds must be greater than or equal to min_delay_seconds"
            raise ValueError(msg)

        self._dispatcher: Dispatcher = dispatcher
        self._min_delay_seconds: float = min_delay_seconds
        self._max_delay_seconds: float = max_delay_seconds
        self._schedule_id_factory: ScheduleIDFactory = schedule_id_factory or (lambda: uuid4().hex)
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._handles: dict[str, ScheduledDispatch] = {}

    def clamp_delay(self, delay_seconds: float) -> float:
        return max(self._min_delay_seconds, min(self._max_delay_seconds, delay_seconds))

    def schedule(self, delayed: DelayedDispatch) -> ScheduledDispatch:
        """Schedule a delayed dispatch and return without waiting for it.

        Must be called from within a running event loop.

        Args:
            delayed: Request and requested delay (clamped to the configured range)

        Returns:
            Handle carrying the acknowledgment and cancellation
        """
        delay = self.clamp_delay(delayed.delay_seconds)
        ack = ScheduleAck(
            schedule_id=self._schedule_id_factory(),
            recipient=delayed.request.recipient,
            scheduled_for=datetime.now(UTC) + timedelta(seconds=delay),
            delay_seconds=delay,
        )
        handle = ScheduledDispatch(ack, delayed, self._dispatcher, self._logger)
        self._handles[ack.schedule_id] = handle
        handle.add_done_callback(self._forget)

        log_with_context(
            self._logger,
            logging.INFO,
            "Notification scheduled",
            extra={
                "schedule_id": ack.schedule_id,
                "recipient": ack.recipient,
                "delay_seconds": delay,
                "requested_delay_seconds": delayed.delay_seconds,
            },
        )
        return handle

    def get(self, schedule_id: str) -> ScheduledDispatch | None:
        """Return the live handle for ``schedule_id``, or None once it has finished."""
        return self._handles.get(schedule_id)

    @property
    def pending_count(self) -> int:
        return sum(1 for handle in self._handles.values() if handle.state is ScheduleState.PENDING)

    async def shutdown(self) -> None:
        """Cancel pending dispatches and wait for running ones to finish."""
        handles = list(self._handles.values())
        cancelled = sum(1 for handle in handles if handle.cancel())
        running = [handle.result() for handle in handles if handle.state is ScheduleState.RUNNING]
        if running:
            _ = await asyncio.gather(*running, return_exceptions=True)
        self._handles.clear()
        log_with_context(
            self._logger,
            logging.INFO,
            "Scheduler shut down",
            extra={"cancelled": cancelled, "awaited": len(running)},
        )

    def _forget(self, handle: ScheduledDispatch) -> None:
        _ = self._handles.pop(handle.schedule_id, None)
