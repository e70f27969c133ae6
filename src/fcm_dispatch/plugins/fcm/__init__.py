"""Firebase Cloud Messaging provider plugin."""

from fcm_dispatch.plugins.fcm.error_handling import (
    TRANSIENT_ERROR_CODES,
    classify_firebase_error,
    classify_transport_error,
)
from fcm_dispatch.plugins.fcm.sender import FirebaseSender, build_message, initialize_app

__all__ = [
    "TRANSIENT_ERROR_CODES",
    "FirebaseSender",
    "build_message",
    "classify_firebase_error",
    "classify_transport_error",
    "initialize_app",
]
