"""Test module imports and package functionality."""

from __future__ import annotations

from types import ModuleType


class TestCoreImports:
    """Test that the package modules can be imported successfully."""

    def test_import_main_package(self) -> None:
        import fcm_dispatch

        assert isinstance(fcm_dispatch, ModuleType)
        assert fcm_dispatch.__version__ == "1.0.0"

    def test_import_core_modules(self) -> None:
        import fcm_dispatch.core
        import fcm_dispatch.core.config
        import fcm_dispatch.core.dispatcher
        import fcm_dispatch.core.retry
        import fcm_dispatch.core.scheduler

        assert fcm_dispatch.core.Dispatcher is fcm_dispatch.core.dispatcher.Dispatcher
        assert fcm_dispatch.core.DispatchScheduler is fcm_dispatch.core.scheduler.DispatchScheduler

    def test_import_types_and_errors(self) -> None:
        import fcm_dispatch.errors
        import fcm_dispatch.types

        assert issubclass(fcm_dispatch.errors.TransientSendError, fcm_dispatch.errors.SendError)
        assert issubclass(fcm_dispatch.errors.PermanentSendError, fcm_dispatch.errors.SendError)
        assert fcm_dispatch.types.NotificationRequest is not None

    def test_import_plugins(self) -> None:
        import fcm_dispatch.plugins
        import fcm_dispatch.plugins.dry_run
        import fcm_dispatch.plugins.fcm

        assert fcm_dispatch.plugins.DryRunSender is fcm_dispatch.plugins.dry_run.DryRunSender
        assert fcm_dispatch.plugins.fcm.FirebaseSender is not None

    def test_import_app_modules(self) -> None:
        import fcm_dispatch.app
        import fcm_dispatch.app.presets
        import fcm_dispatch.app.schemas
        import fcm_dispatch.app.web

        assert fcm_dispatch.app.create_app is fcm_dispatch.app.web.create_app

    def test_import_utils(self) -> None:
        import fcm_dispatch.utils
        import fcm_dispatch.utils.logging
        import fcm_dispatch.utils.sanitization

        assert fcm_dispatch.utils.logging.correlation_id_var is not None


class TestProtocolConformance:
    """Test that the bundled senders satisfy the Sender protocol."""

    def test_dry_run_sender_is_a_sender(self) -> None:
        from fcm_dispatch.plugins.dry_run import DryRunSender
        from fcm_dispatch.types import Sender

        assert isinstance(DryRunSender(), Sender)
