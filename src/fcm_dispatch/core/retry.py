"""Retry policy with exponential backoff for transient send failures."""

from __future__ import annotations

import random
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fcm_dispatch.errors import ErrorKind, SendError

__all__ = ["RetryPolicy"]


class RetryPolicy(BaseModel):
    """Per-request retry policy.

    Only transient errors are retried. The delay before attempt ``n + 1`` is
    ``min(base_delay_seconds * 2 ** (n - 1), max_delay_seconds)``, optionally
    randomized by ``±jitter_percent`` and capped again at ``max_delay_seconds``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: Annotated[
        int,
        Field(ge=1, description="Maximum Sender calls per request, including the first"),
    ] = 3
    base_delay_seconds: Annotated[
        float,
        Field(ge=0, description="Backoff before the second attempt"),
    ] = 0.5
    max_delay_seconds: Annotated[
        float,
        Field(ge=0, description="Upper bound for any single backoff"),
    ] = 30.0
    jitter_percent: Annotated[
        float,
        Field(ge=0, le=100, description="Random ± spread applied to each backoff"),
    ] = 0.0

    @model_validator(mode="after")
    def validate_delay_bounds(self) -> Self:
        if self.base_delay_seconds > self.max_delay_seconds:
            msg = (
                f"base_delay_seconds ({self.base_delay_seconds}) must not exceed "
                f"max_delay_seconds ({self.max_delay_seconds})"
            )
            raise ValueError(msg)
        return self

    def should_retry(self, error: SendError, attempt: int) -> bool:
        """Return True if another attempt should follow a failed ``attempt`` (1-indexed)."""
        return error.kind is ErrorKind.TRANSIENT and attempt < self.max_attempts

    def backoff_delay(self, attempt: int) -> float:
        """Calculate the delay to wait after failed ``attempt`` (1-indexed).

        Args:
            attempt: Number of the attempt that just failed

        Returns:
            Delay in seconds, never above ``max_delay_seconds``
        """
        # Exponent capped so very large attempt counts cannot overflow a float
        exponent = min(max(attempt, 1) - 1, 64)
        exponential_delay: float = self.base_delay_seconds * pow(2.0, exponent)
        base_delay = min(exponential_delay, self.max_delay_seconds)
        if not self.jitter_percent:
            return base_delay

        jitter_factor: float = 1.0 + random.uniform(
            -self.jitter_percent / 100.0,
            self.jitter_percent / 100.0,
        )
        return min(base_delay * jitter_factor, self.max_delay_seconds)
