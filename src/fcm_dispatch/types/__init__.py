"""Type definitions and protocols for fcm-dispatch.

This package provides:
- Data models (frozen pydantic inputs, immutable dataclass outputs)
- Protocol definitions (structural subtyping interfaces)
"""

from fcm_dispatch.types.models import (
    BatchResult,
    DelayedDispatch,
    DispatchOutcome,
    DispatchStatus,
    ErrorKind,
    NotificationRequest,
    RecipientKind,
    ScheduleAck,
)
from fcm_dispatch.types.protocols import Sender, SleepFunc

__all__ = [
    # Data models
    "BatchResult",
    "DelayedDispatch",
    "DispatchOutcome",
    "DispatchStatus",
    "ErrorKind",
    "NotificationRequest",
    "RecipientKind",
    "ScheduleAck",
    # Protocols
    "Sender",
    "SleepFunc",
]
