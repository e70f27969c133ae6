"""Classification of Firebase Admin SDK errors into send error kinds."""

from __future__ import annotations

from typing import Final

from firebase_admin import exceptions

from fcm_dispatch.errors import PermanentSendError, SendError, TransientSendError
from fcm_dispatch.utils.sanitization import sanitize_text

__all__ = ["TRANSIENT_ERROR_CODES", "classify_firebase_error", "classify_transport_error"]

# Canonical FirebaseError codes worth retrying: outages, overload and quota
TRANSIENT_ERROR_CODES: Final[frozenset[str]] = frozenset(
    {
        exceptions.UNAVAILABLE,
        exceptions.INTERNAL,
        exceptions.DEADLINE_EXCEEDED,
        exceptions.RESOURCE_EXHAUSTED,
        exceptions.UNKNOWN,
        exceptions.ABORTED,
    }
)


def _should_retry_firebase_error(error: exceptions.FirebaseError) -> bool:
    """Return True if the Firebase error should trigger a retry.

    Unregistered tokens, sender ID mismatches and auth failures surface as
    NOT_FOUND, PERMISSION_DENIED and UNAUTHENTICATED and are never retried.
    """
    return error.code in TRANSIENT_ERROR_CODES


def classify_firebase_error(error: exceptions.FirebaseError) -> SendError:
    """Map a FirebaseError onto a transient or permanent send error."""
    message = f"FCM error ({error.code}): {sanitize_text(str(error))}"
    if _should_retry_firebase_error(error):
        return TransientSendError(message)
    return PermanentSendError(message)


def classify_transport_error(error: Exception) -> SendError:
    """Map an exception raised outside the Firebase error hierarchy.

    Transport failures (connection resets, socket timeouts) are transient;
    malformed message arguments rejected by the SDK are permanent.
    """
    message = f"{type(error).__name__}: {sanitize_text(str(error))}"
    if isinstance(error, (OSError, TimeoutError)):
        return TransientSendError(f"Transport error: {message}")
    return PermanentSendError(f"Invalid message: {message}")
