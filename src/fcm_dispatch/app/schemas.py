"""Request bodies and response rendering for the HTTP API.

Bodies use the camelCase field names of the public API (``delaySeconds``) and
are validated with pydantic before anything is dispatched. Responses are plain
dicts built from the core result types.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fcm_dispatch.types import RecipientKind, ScheduleAck

__all__ = [
    "BulkSendBody",
    "NotificationTypeBody",
    "ScheduleBody",
    "SendBody",
    "TopicSendBody",
    "render_ack",
    "render_data_value",
]


def render_data_value(value: object) -> object:
    """Render a JSON scalar the way FCM data expects it; other values pass through."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class _Body(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )

    data: Annotated[
        dict[str, str],
        Field(default_factory=dict, description="Data payload; scalar values are sent as strings"),
    ]

    @field_validator("data", mode="before")
    @classmethod
    def stringify_data(cls, value: object) -> object:
        """Render scalar payload values as strings, since FCM data is string-only."""
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        return {key: render_data_value(item) for key, item in value.items()}  # pyright: ignore[reportUnknownVariableType]  # JSON boundary


class SendBody(_Body):
    """Body of ``POST /api/fcm/send``.

    The top-level ``id``, ``type``, ``read`` and ``issuedDate`` fields are sent
    as data alongside ``data``, taking precedence over keys of the same name.
    """

    token: Annotated[str, Field(min_length=1)]
    title: Annotated[str, Field(min_length=1)]
    description: Annotated[str, Field(min_length=1)]
    id: int | None = None
    type: int | None = None
    read: bool | None = None
    issued_date: Annotated[str | None, Field(alias="issuedDate")] = None

    def attributes(self) -> dict[str, str]:
        fields = {"id": self.id, "type": self.type, "read": self.read, "issuedDate": self.issued_date}
        rendered = {key: str(render_data_value(value)) for key, value in fields.items() if value is not None}
        return {**self.data, **rendered}


class TopicSendBody(_Body):
    """Body of ``POST /api/fcm/topic``."""

    topic: Annotated[str, Field(min_length=1)]
    title: Annotated[str, Field(min_length=1)]
    description: Annotated[str, Field(min_length=1)]


class BulkSendBody(_Body):
    """Body of ``POST /api/fcm/bulk``.

    ``title`` and ``description`` fall back to the server's configured bulk
    defaults. With ``numbered`` each item gets an ``(i/n)`` title suffix and a
    ``- Message i`` body suffix.
    """

    tokens: Annotated[list[Annotated[str, Field(min_length=1)]], Field(min_length=1)]
    title: Annotated[str, Field(min_length=1)] | None = None
    description: Annotated[str, Field(min_length=1)] | None = None
    concurrency: Annotated[int, Field(strict=True)] | None = None
    numbered: bool = True


class ScheduleBody(_Body):
    """Body of ``POST /api/fcm/schedule``; exactly one of token or topic."""

    token: Annotated[str, Field(min_length=1)] | None = None
    topic: Annotated[str, Field(min_length=1)] | None = None
    title: Annotated[str, Field(min_length=1)] = "Scheduled Test"
    description: Annotated[str, Field(min_length=1)] = "This notification was delayed"
    delay_seconds: Annotated[float, Field(alias="delaySeconds", ge=0)] = 5.0

    @model_validator(mode="after")
    def validate_single_recipient(self) -> Self:
        if (self.token is None) == (self.topic is None):
            msg = "Exactly one of token or topic is required"
            raise ValueError(msg)
        return self

    @property
    def recipient(self) -> str:
        return self.token if self.token is not None else str(self.topic)

    @property
    def recipient_kind(self) -> RecipientKind:
        return RecipientKind.TOKEN if self.token is not None else RecipientKind.TOPIC


class NotificationTypeBody(BaseModel):
    """Body of ``POST /api/fcm/notification-types``."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    token: Annotated[str, Field(min_length=1)]
    type: str = "info"


def render_ack(ack: ScheduleAck) -> dict[str, object]:
    return {
        "scheduleId": ack.schedule_id,
        "scheduledFor": ack.scheduled_for.isoformat(),
        "recipient": ack.recipient,
        "delaySeconds": ack.delay_seconds,
    }
