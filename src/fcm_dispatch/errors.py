"""Exception hierarchy for fcm-dispatch.

Per-item send failures are modelled as ``SendError`` subclasses raised by a
``Sender`` and converted into ``DispatchOutcome`` values by the dispatcher.
Only validation errors ever propagate out of a dispatch call.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, override

if TYPE_CHECKING:
    from pydantic import ValidationError

__all__ = [
    "BatchValidationError",
    "ErrorKind",
    "FCMDispatchError",
    "PermanentSendError",
    "RequestValidationError",
    "SendError",
    "TransientSendError",
]


class ErrorKind(Enum):
    """Classification of a failed dispatch outcome."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"


class FCMDispatchError(Exception):
    """Base exception for all fcm-dispatch errors."""


class RequestValidationError(FCMDispatchError, ValueError):
    """Raised when a notification request or delayed dispatch is malformed.

    Attributes:
        errors: Field-level diagnostics, one mapping per problem with
            ``field`` and ``message`` keys
    """

    errors: list[dict[str, str]]

    def __init__(self, message: str, *, errors: Sequence[Mapping[str, str]] = ()) -> None:
        super().__init__(message)
        self.errors = [dict(error) for error in errors]

    @classmethod
    def from_pydantic(cls, exc: ValidationError, *, subject: str = "request") -> RequestValidationError:
        """Build from a pydantic ValidationError, flattening field locations."""
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]) or subject,
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        fields = ", ".join(error["field"] for error in errors)
        return cls(f"Invalid {subject}: {fields}", errors=errors)


class BatchValidationError(FCMDispatchError, ValueError):
    """Raised when a whole batch is rejected before any send is attempted."""


class SendError(FCMDispatchError):
    """Failure reported by a Sender for a single request.

    Subclasses fix ``kind``; the dispatcher retries only transient errors.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.PERMANENT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message

    @override
    def __str__(self) -> str:
        return self.message


class TransientSendError(SendError):
    """Send failure expected to succeed on retry (timeouts, rate limits, 5xx)."""

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSIENT


class PermanentSendError(SendError):
    """Send failure that will not succeed on retry (bad recipient, bad payload, auth)."""

    kind: ClassVar[ErrorKind] = ErrorKind.PERMANENT
