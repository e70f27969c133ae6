"""Sender implementations.

The Firebase sender lives in ``fcm_dispatch.plugins.fcm`` and is imported
lazily by the entry point so dry-run mode never initializes the SDK.
"""

from fcm_dispatch.plugins.dry_run import DryRunSender

__all__ = ["DryRunSender"]
