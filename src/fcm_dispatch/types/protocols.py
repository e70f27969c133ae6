"""Protocol definitions for component interfaces.

This module defines structural subtyping protocols that establish
contracts for pluggable components without requiring inheritance.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from fcm_dispatch.types.models import NotificationRequest


@runtime_checkable
class Sender(Protocol):
    """Protocol for the push-notification delivery capability.

    Implementations adapt a single remote provider call. The dispatcher owns
    retries, concurrency and timeouts; a Sender performs exactly one attempt
    per call.
    """

    async def send(self, request: NotificationRequest) -> str:
        """Deliver one notification.

        Args:
            request: Validated notification request

        Returns:
            Provider-assigned message identifier

        Raises:
            TransientSendError: If the failure may succeed on retry
            PermanentSendError: If the failure will not succeed on retry
        """
        ...


# Awaitable sleep used for backoff; injectable for tests
type SleepFunc = Callable[[float], Awaitable[None]]
