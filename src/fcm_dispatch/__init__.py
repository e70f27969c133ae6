"""fcm-dispatch - Bounded, retrying fan-out of push notifications to Firebase Cloud Messaging.

This package provides a batch dispatcher with a fixed-size worker pool,
per-request retry of transient failures, cancellable delayed sends, and an
HTTP API in front of them.
"""

from fcm_dispatch.__about__ import __version__
from fcm_dispatch.__main__ import main

__all__ = ["__version__", "main"]
