"""Firebase Cloud Messaging sender.

This module implements the Sender Protocol on top of the Firebase Admin SDK.
Each call builds one ``messaging.Message`` addressed to a device token or a
topic and sends it from a worker thread, since the SDK is synchronous.
"""

from __future__ import annotations

import asyncio
import logging
import time

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from fcm_dispatch.core.config import FirebaseConfig
from fcm_dispatch.plugins.fcm.error_handling import classify_firebase_error, classify_transport_error
from fcm_dispatch.types import NotificationRequest, RecipientKind
from fcm_dispatch.utils.logging import get_logger, log_with_context

__all__ = ["FirebaseSender", "build_message", "initialize_app"]


def initialize_app(config: FirebaseConfig) -> firebase_admin.App:
    """Return the named firebase_admin App, creating it on first use.

    Uses the service-account file when configured, otherwise application
    default credentials.
    """
    try:
        return firebase_admin.get_app(config.app_name)
    except ValueError:
        pass

    credential: credentials.Base
    if config.credentials_file is not None:
        credential = credentials.Certificate(str(config.credentials_file))
    else:
        credential = credentials.ApplicationDefault()

    options: dict[str, object] | None = None
    if config.project_id:
        options = {"projectId": config.project_id}
    return firebase_admin.initialize_app(credential, options, name=config.app_name)


def build_message(request: NotificationRequest) -> messaging.Message:
    """Translate a NotificationRequest into an FCM message.

    Raises:
        ValueError: If the SDK rejects the message arguments
    """
    notification = messaging.Notification(title=request.title, body=request.body)
    data = dict(request.attributes) or None
    if request.recipient_kind is RecipientKind.TOPIC:
        return messaging.Message(notification=notification, data=data, topic=request.recipient)
    return messaging.Message(notification=notification, data=data, token=request.recipient)


class FirebaseSender:
    """Send notifications through the Firebase Admin SDK."""

    def __init__(
        self,
        app: firebase_admin.App,
        *,
        validate_only: bool = False,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._app: firebase_admin.App = app
        self._validate_only: bool = validate_only
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @classmethod
    def from_config(cls, config: FirebaseConfig) -> FirebaseSender:
        return cls(initialize_app(config), validate_only=config.validate_only)

    async def send(self, request: NotificationRequest) -> str:
        """Deliver one notification and return the FCM message name.

        Raises:
            TransientSendError: For outages, quota and transport failures
            PermanentSendError: For invalid recipients, payloads and auth failures
        """
        start = time.perf_counter()
        try:
            message = build_message(request)
            message_id: str = await asyncio.to_thread(
                messaging.send,
                message,
                self._validate_only,
                self._app,
            )
        except exceptions.FirebaseError as exc:
            error = classify_firebase_error(exc)
        except (ValueError, TypeError, OSError) as exc:
            error = classify_transport_error(exc)
        else:
            log_with_context(
                self._logger,
                logging.DEBUG,
                "FCM message accepted",
                extra={
                    "recipient": request.recipient,
                    "recipient_kind": request.recipient_kind.value,
                    "message_id": message_id,
                    "delivery_time_ms": (time.perf_counter() - start) * 1000.0,
                },
            )
            return message_id

        log_with_context(
            self._logger,
            logging.WARNING,
            "FCM send failed",
            extra={
                "recipient": request.recipient,
                "recipient_kind": request.recipient_kind.value,
                "error_kind": error.kind.value,
                "error_message": error.message,
                "delivery_time_ms": (time.perf_counter() - start) * 1000.0,
            },
        )
        raise error
