"""Notification type codes and the presets served by ``POST /api/fcm/notification-types``.

Mobile clients key on four data fields stamped on every generated notification:
``id`` (millisecond timestamp), ``type`` (numeric code), ``read`` and
``issuedDate`` (ISO 8601, UTC).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Final

__all__ = [
    "BULK_TYPE_CODE",
    "NOTIFICATION_PRESETS",
    "SCHEDULED_TYPE_CODE",
    "NotificationPreset",
    "get_preset",
    "notification_fields",
]

BULK_TYPE_CODE: Final[int] = 2
SCHEDULED_TYPE_CODE: Final[int] = 3


@dataclass(slots=True, frozen=True)
class NotificationPreset:
    """Title, body and data payload for one notification type."""

    title: str
    description: str
    type_code: int
    data: dict[str, str] = field(default_factory=dict)

    def attributes(self) -> dict[str, str]:
        """Data payload sent with the notification, including the generated fields."""
        return {**self.data, **notification_fields(self.type_code)}


NOTIFICATION_PRESETS: Final[dict[str, NotificationPreset]] = {
    "info": NotificationPreset(
        title="ℹ️ Information",
        description="This is an informational notification",
        type_code=1,
        data={"priority": "normal", "category": "info"},
    ),
    "warning": NotificationPreset(
        title="⚠️ Warning",
        description="This is a warning notification",
        type_code=2,
        data={"priority": "high", "category": "warning", "action_required": "false"},
    ),
    "error": NotificationPreset(
        title="❌ Error",
        description="This is an error notification",
        type_code=3,
        data={"priority": "high", "category": "error", "action_required": "true"},
    ),
    "success": NotificationPreset(
        title="✅ Success",
        description="Operation completed successfully!",
        type_code=4,
        data={"priority": "normal", "category": "success"},
    ),
    "urgent": NotificationPreset(
        title="🚨 Urgent",
        description="This requires immediate attention!",
        type_code=5,
        data={"priority": "high", "category": "urgent", "action_required": "true"},
    ),
}


def get_preset(name: str) -> NotificationPreset | None:
    return NOTIFICATION_PRESETS.get(name.strip().lower())


def notification_fields(
    type_code: int,
    *,
    offset: int = 0,
    issued_at: datetime | None = None,
) -> dict[str, str]:
    """Build the ``id``/``type``/``read``/``issuedDate`` data fields.

    Args:
        type_code: Numeric notification type
        offset: Added to the millisecond id so items of one batch stay distinct
        issued_at: Issue time; defaults to now

    Returns:
        String-valued data fields for the notification payload
    """
    issued = issued_at or datetime.now(UTC)
    return {
        "id": str(time.time_ns() // 1_000_000 + offset),
        "type": str(type_code),
        "read": "false",
        "issuedDate": issued.isoformat(),
    }
