"""Sender that records notifications instead of delivering them."""

from __future__ import annotations

import logging
from collections import deque
from uuid import uuid4

from fcm_dispatch.types import NotificationRequest
from fcm_dispatch.utils.logging import get_logger, log_with_context

__all__ = ["DEFAULT_HISTORY_SIZE", "DRY_RUN_ID_PREFIX", "DryRunSender"]

DRY_RUN_ID_PREFIX = "dry-run-"
DEFAULT_HISTORY_SIZE = 100


class DryRunSender:
    """Log each request and return a synthetic provider message id.

    Only the most recent ``history_size`` requests are kept in ``recent``.
    """

    def __init__(
        self,
        *,
        history_size: int = DEFAULT_HISTORY_SIZE,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self.recent: deque[NotificationRequest] = deque(maxlen=history_size)

    async def send(self, request: NotificationRequest) -> str:
        message_id = f"{DRY_RUN_ID_PREFIX}{uuid4().hex}"
        self.recent.append(request)
        log_with_context(
            self._logger,
            logging.INFO,
            "Dry-run notification recorded",
            extra={
                "recipient": request.recipient,
                "recipient_kind": request.recipient_kind.value,
                "title": request.title,
                "attribute_names": sorted(request.attributes),
                "message_id": message_id,
            },
        )
        return message_id
