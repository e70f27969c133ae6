"""Bounded fan-out dispatcher for push notifications.

This module implements the Dispatcher class responsible for sending a batch of
notification requests through an injected Sender using a fixed-size pool of
asyncio worker tasks, per-request retry of transient failures, and an optional
overall deadline after which no new sends are started.

The dispatcher has no side effects beyond Sender calls: it does not log and
keeps no state between calls. Callers inspect the returned BatchResult.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from fcm_dispatch.core.retry import RetryPolicy
from fcm_dispatch.errors import (
    BatchValidationError,
    ErrorKind,
    PermanentSendError,
    SendError,
    TransientSendError,
)
from fcm_dispatch.types import BatchResult, DispatchOutcome, NotificationRequest, Sender, SleepFunc
from fcm_dispatch.utils.sanitization import sanitize_exception

__all__ = ["Dispatcher"]

CANCELLED_MESSAGE = "Dispatch deadline expired before the request was started"


@dataclass(slots=True)
class _BatchRun:
    """Mutable state shared by the workers of one dispatch call."""

    queue: asyncio.Queue[tuple[int, NotificationRequest]]
    retry_policy: RetryPolicy
    slots: list[DispatchOutcome | None]
    stop: asyncio.Event = field(default_factory=asyncio.Event)

    def record(self, index: int, outcome: DispatchOutcome) -> None:
        # Each index is owned by exactly one worker; no lock needed
        self.slots[index] = outcome


class Dispatcher:
    """Dispatch batches of notifications with bounded concurrency and retries."""

    def __init__(
        self,
        sender: Sender,
        *,
        max_concurrency: int = 20,
        default_concurrency: int = 10,
        max_batch_size: int = 500,
        default_retry_policy: RetryPolicy | None = None,
        send_timeout_seconds: float | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        if max_concurrency < 1:
            msg = "max_concurrency must be at least 1"
            raise ValueError(msg)
        if max_batch_size < 1:
            msg = "max_batch_size must be at least 1"
            raise ValueError(msg)
        if send_timeout_seconds is not None and send_timeout_seconds <= 0:
            msg = "send_timeout_seconds must be greater than zero"
            raise ValueError(msg)

        self._sender: Sender = sender
        self._max_concurrency: int = max_concurrency
        self._default_concurrency: int = max(1, min(default_concurrency, max_concurrency))
        self._max_batch_size: int = max_batch_size
        self._default_retry_policy: RetryPolicy = default_retry_policy or RetryPolicy()
        self._send_timeout_seconds: float | None = send_timeout_seconds
        self._sleep: SleepFunc = sleep

    def effective_concurrency(self, concurrency: int | None) -> int:
        """Resolve a requested concurrency to the value actually used.

        Raises:
            BatchValidationError: If concurrency is below 1
        """
        if concurrency is None:
            return self._default_concurrency
        if isinstance(concurrency, bool) or not isinstance(concurrency, int):  # pyright: ignore[reportUnnecessaryIsInstance]
            msg = f"concurrency must be an integer, got {type(concurrency).__name__}"
            raise BatchValidationError(msg)
        if concurrency < 1:
            msg = f"concurrency must be at least 1, got {concurrency}"
            raise BatchValidationError(msg)
        return min(concurrency, self._max_concurrency)

    async def dispatch(
        self,
        requests: Sequence[NotificationRequest],
        *,
        concurrency: int | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = None,
    ) -> BatchResult:
        """Send every request and return one outcome per request, in input order.

        Args:
            requests: Ordered batch of validated requests (may be empty)
            concurrency: Maximum in-flight requests; clamped to max_concurrency
            retry_policy: Policy for transient failures; defaults to the dispatcher's
            timeout: Overall deadline in seconds after which unstarted requests
                are marked cancelled

        Returns:
            BatchResult with exactly one outcome per input request

        Raises:
            BatchValidationError: If the batch itself is malformed
        """
        batch = self._validate_batch(requests)
        workers = self.effective_concurrency(concurrency)
        if timeout is not None and timeout <= 0:
            msg = f"timeout must be greater than zero, got {timeout}"
            raise BatchValidationError(msg)

        if not batch:
            return BatchResult()

        run = _BatchRun(
            queue=asyncio.Queue(),
            retry_policy=retry_policy or self._default_retry_policy,
            slots=[None] * len(batch),
        )
        for index, request in enumerate(batch):
            run.queue.put_nowait((index, request))

        deadline_handle: asyncio.TimerHandle | None = None
        if timeout is not None:
            deadline_handle = asyncio.get_running_loop().call_later(timeout, run.stop.set)

        try:
            async with asyncio.TaskGroup() as task_group:
                for _ in range(min(workers, len(batch))):
                    _ = task_group.create_task(self._worker(run))
        finally:
            if deadline_handle is not None:
                deadline_handle.cancel()

        return BatchResult(outcomes=tuple(self._finalize(batch, run.slots)))

    def _validate_batch(self, requests: object) -> Sequence[NotificationRequest]:
        if isinstance(requests, (str, bytes, bytearray, Mapping)) or not isinstance(requests, Sequence):
            msg = f"requests must be a sequence of NotificationRequest, got {type(requests).__name__}"
            raise BatchValidationError(msg)

        batch: Sequence[object] = requests  # pyright: ignore[reportUnknownVariableType]
        if len(batch) > self._max_batch_size:
            msg = f"Batch of {len(batch)} requests exceeds the maximum of {self._max_batch_size}"
            raise BatchValidationError(msg)

        for position, item in enumerate(batch):
            if not isinstance(item, NotificationRequest):
                msg = f"requests[{position}] is {type(item).__name__}, expected NotificationRequest"
                raise BatchValidationError(msg)
        return batch  # pyright: ignore[reportReturnType]

    async def _worker(self, run: _BatchRun) -> None:
        while not run.stop.is_set():
            try:
                index, request = run.queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            outcome = await self._run_request(request, run)
            run.record(index, outcome)

    async def _run_request(self, request: NotificationRequest, run: _BatchRun) -> DispatchOutcome:
        attempt = 0
        while True:
            attempt += 1
            try:
                message_id = await self._attempt(request)
            except SendError as error:
                if not run.retry_policy.should_retry(error, attempt):
                    return DispatchOutcome.failed(
                        request.recipient,
                        error.kind,
                        error.message,
                        attempts=attempt,
                    )
                delay = run.retry_policy.backoff_delay(attempt)
                if not await self._backoff(delay, run.stop):
                    return DispatchOutcome.failed(
                        request.recipient,
                        error.kind,
                        error.message,
                        attempts=attempt,
                    )
            else:
                return DispatchOutcome.sent(request.recipient, message_id, attempts=attempt)

    async def _attempt(self, request: NotificationRequest) -> str:
        """Make one Sender call, normalising every failure into a SendError."""
        start = time.perf_counter()
        message_id: object
        try:
            if self._send_timeout_seconds is None:
                message_id = await self._sender.send(request)
            else:
                async with asyncio.timeout(self._send_timeout_seconds):
                    message_id = await self._sender.send(request)
        except asyncio.CancelledError:
            raise
        except SendError:
            raise
        except TimeoutError as exc:
            elapsed = time.perf_counter() - start
            msg = f"Send timed out after {elapsed:.2f}s"
            raise TransientSendError(msg) from exc
        except Exception as exc:
            msg = f"Sender raised unexpectedly: {sanitize_exception(exc)}"
            raise PermanentSendError(msg) from exc

        if not isinstance(message_id, str) or not message_id:
            msg = f"Sender returned no message id (got {type(message_id).__name__})"
            raise PermanentSendError(msg)
        return message_id

    async def _backoff(self, delay: float, stop: asyncio.Event) -> bool:
        """Wait out a backoff delay.

        Returns:
            False if the batch deadline fired before or during the wait
        """
        if stop.is_set():
            return False
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(stop.wait())
        try:
            _ = await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            _ = sleeper.cancel()
            _ = stopper.cancel()
        return not stop.is_set()

    @staticmethod
    def _finalize(
        batch: Sequence[NotificationRequest],
        slots: Sequence[DispatchOutcome | None],
    ) -> Iterator[DispatchOutcome]:
        for request, outcome in zip(batch, slots, strict=True):
            if outcome is None:
                yield DispatchOutcome.failed(
                    request.recipient,
                    ErrorKind.CANCELLED,
                    CANCELLED_MESSAGE,
                    attempts=0,
                )
            else:
                yield outcome
