"""Data models for fcm-dispatch.

Inputs (``NotificationRequest``, ``DelayedDispatch``) are frozen pydantic models
so malformed data is rejected at construction. Outputs (``DispatchOutcome``,
``BatchResult``, ``ScheduleAck``) are immutable dataclasses.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Final, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from fcm_dispatch.errors import ErrorKind, RequestValidationError

__all__ = [
    "BatchResult",
    "DelayedDispatch",
    "DispatchOutcome",
    "DispatchStatus",
    "ErrorKind",
    "NotificationRequest",
    "RecipientKind",
    "ScheduleAck",
]

# FCM topic names: letters, digits and -_.~%
TOPIC_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"[a-zA-Z0-9\-_.~%]+")
TOPIC_PREFIX: Final[str] = "/topics/"


class RecipientKind(Enum):
    """How a recipient string addresses the provider."""

    TOKEN = "token"
    TOPIC = "topic"


class DispatchStatus(Enum):
    """Terminal status of a single dispatched request."""

    SENT = "sent"
    FAILED = "failed"


class NotificationRequest(BaseModel):
    """A single push notification addressed to a device token or topic."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    recipient: Annotated[
        str,
        Field(min_length=1, description="Device registration token or topic name"),
    ]
    title: Annotated[
        str,
        Field(min_length=1, description="Notification title"),
    ]
    body: Annotated[
        str,
        Field(min_length=1, description="Notification body text"),
    ]
    attributes: Annotated[
        Mapping[str, str],
        Field(default_factory=dict, validate_default=True, description="String key/value data payload"),
    ]
    recipient_kind: Annotated[
        RecipientKind,
        Field(description="Whether recipient is a device token or a topic"),
    ] = RecipientKind.TOKEN

    @field_validator("attributes", mode="after")
    @classmethod
    def freeze_attributes(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("attributes")
    def serialize_attributes(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)

    @model_validator(mode="before")
    @classmethod
    def strip_topic_prefix(cls, data: object) -> object:
        """Accept the legacy ``/topics/<name>`` form for topic recipients."""
        if not isinstance(data, Mapping):
            return data
        kind: object = data.get("recipient_kind")  # pyright: ignore[reportUnknownMemberType]
        recipient: object = data.get("recipient")  # pyright: ignore[reportUnknownMemberType]
        if kind in (RecipientKind.TOPIC, RecipientKind.TOPIC.value) and isinstance(recipient, str):
            stripped = recipient.strip()
            if stripped.startswith(TOPIC_PREFIX):
                return {**data, "recipient": stripped.removeprefix(TOPIC_PREFIX)}  # pyright: ignore[reportUnknownArgumentType]
        return data

    @model_validator(mode="after")
    def validate_topic_name(self) -> Self:
        """Reject topic names the provider would refuse."""
        if self.recipient_kind is RecipientKind.TOPIC and not TOPIC_NAME_PATTERN.fullmatch(self.recipient):
            msg = f"Invalid topic name: {self.recipient!r}"
            raise ValueError(msg)
        return self

    @classmethod
    def build(
        cls,
        recipient: str,
        title: str,
        body: str,
        *,
        attributes: Mapping[str, str] | None = None,
        recipient_kind: RecipientKind = RecipientKind.TOKEN,
    ) -> NotificationRequest:
        """Construct a request, raising RequestValidationError on bad input.

        Raises:
            RequestValidationError: If any field is empty or malformed
        """
        try:
            return cls(
                recipient=recipient,
                title=title,
                body=body,
                attributes=dict(attributes or {}),
                recipient_kind=recipient_kind,
            )
        except ValidationError as exc:
            raise RequestValidationError.from_pydantic(exc) from exc


class DelayedDispatch(BaseModel):
    """A request to be dispatched once a delay has elapsed."""

    model_config = ConfigDict(frozen=True)

    request: NotificationRequest
    delay_seconds: Annotated[
        float,
        Field(ge=0, description="Seconds to wait before dispatching"),
    ]

    @classmethod
    def build(cls, request: NotificationRequest, delay_seconds: float) -> DelayedDispatch:
        """Construct a delayed dispatch, raising RequestValidationError on bad input."""
        try:
            return cls(request=request, delay_seconds=delay_seconds)
        except ValidationError as exc:
            raise RequestValidationError.from_pydantic(exc, subject="delayed dispatch") from exc


@dataclass(slots=True, frozen=True)
class DispatchOutcome:
    """Terminal result for one request of a batch.

    ``provider_message_id`` is set iff the request was sent; ``error_kind`` and
    ``error_message`` are set iff it failed. ``attempts`` counts Sender calls and
    is zero only for requests cancelled before they started.
    """

    recipient: str
    status: DispatchStatus
    attempts: int
    provider_message_id: str | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        if self.status is DispatchStatus.SENT:
            if self.provider_message_id is None or self.error_kind is not None:
                msg = "Sent outcome requires a provider_message_id and no error"
                raise ValueError(msg)
            if self.attempts < 1:
                msg = "Sent outcome requires at least one attempt"
                raise ValueError(msg)
        else:
            if self.error_kind is None or self.provider_message_id is not None:
                msg = "Failed outcome requires an error_kind and no provider_message_id"
                raise ValueError(msg)
            if self.attempts < 0 or (self.attempts == 0 and self.error_kind is not ErrorKind.CANCELLED):
                msg = "Only cancelled outcomes may have zero attempts"
                raise ValueError(msg)

    @classmethod
    def sent(cls, recipient: str, provider_message_id: str, *, attempts: int) -> DispatchOutcome:
        return cls(
            recipient=recipient,
            status=DispatchStatus.SENT,
            attempts=attempts,
            provider_message_id=provider_message_id,
        )

    @classmethod
    def failed(
        cls,
        recipient: str,
        kind: ErrorKind,
        message: str,
        *,
        attempts: int,
    ) -> DispatchOutcome:
        return cls(
            recipient=recipient,
            status=DispatchStatus.FAILED,
            attempts=attempts,
            error_kind=kind,
            error_message=message,
        )

    @property
    def is_sent(self) -> bool:
        return self.status is DispatchStatus.SENT

    def to_dict(self) -> dict[str, object]:
        """Render as a JSON-ready dict with camelCase keys."""
        return {
            "recipient": self.recipient,
            "status": self.status.value,
            "attempts": self.attempts,
            "providerMessageId": self.provider_message_id,
            "errorKind": self.error_kind.value if self.error_kind is not None else None,
            "errorMessage": self.error_message,
        }


@dataclass(slots=True, frozen=True)
class BatchResult:
    """Outcomes of a dispatched batch, in input order."""

    outcomes: tuple[DispatchOutcome, ...] = ()

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def sent_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_sent)

    @property
    def failed_count(self) -> int:
        return self.total - self.sent_count

    def to_dict(self) -> dict[str, object]:
        """Render counts and every outcome as a JSON-ready dict."""
        return {
            "total": self.total,
            "sentCount": self.sent_count,
            "failedCount": self.failed_count,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


@dataclass(slots=True, frozen=True)
class ScheduleAck:
    """Acknowledgment returned as soon as a delayed dispatch is scheduled."""

    schedule_id: str
    recipient: str
    scheduled_for: datetime
    delay_seconds: float
