"""HTTP application layer."""

from fcm_dispatch.app.web import create_app

__all__ = ["create_app"]
