"""Tests for Firebase error classification."""

from __future__ import annotations

import pytest
from firebase_admin import exceptions, messaging

from fcm_dispatch.errors import ErrorKind, PermanentSendError, TransientSendError
from fcm_dispatch.plugins.fcm.error_handling import (
    TRANSIENT_ERROR_CODES,
    classify_firebase_error,
    classify_transport_error,
)


@pytest.mark.unit
class TestClassifyFirebaseError:
    """Test mapping of FirebaseError codes onto send error kinds."""

    @pytest.mark.parametrize(
        "error",
        [
            exceptions.UnavailableError("backend unavailable"),
            exceptions.InternalError("internal error"),
            exceptions.DeadlineExceededError("deadline exceeded"),
            exceptions.ResourceExhaustedError("quota"),
            exceptions.UnknownError("unknown"),
            exceptions.AbortedError("aborted"),
            messaging.QuotaExceededError("sending quota exceeded"),
        ],
    )
    def test_transient_codes(self, error: exceptions.FirebaseError) -> None:
        classified = classify_firebase_error(error)

        assert isinstance(classified, TransientSendError)
        assert classified.kind is ErrorKind.TRANSIENT
        assert error.code in classified.message

    @pytest.mark.parametrize(
        "error",
        [
            exceptions.InvalidArgumentError("invalid registration token"),
            messaging.UnregisteredError("token is not registered"),
            messaging.SenderIdMismatchError("sender id mismatch"),
            messaging.ThirdPartyAuthError("apns auth failed"),
            exceptions.PermissionDeniedError("permission denied"),
            exceptions.UnauthenticatedError("bad credentials"),
        ],
    )
    def test_permanent_codes(self, error: exceptions.FirebaseError) -> None:
        classified = classify_firebase_error(error)

        assert isinstance(classified, PermanentSendError)
        assert classified.kind is ErrorKind.PERMANENT

    def test_transient_code_set(self) -> None:
        assert TRANSIENT_ERROR_CODES == {
            "UNAVAILABLE",
            "INTERNAL",
            "DEADLINE_EXCEEDED",
            "RESOURCE_EXHAUSTED",
            "UNKNOWN",
            "ABORTED",
        }

    def test_message_is_sanitized(self) -> None:
        token = "dGVzdC1pbnN0YW5jZQ:APA91bHPRgkF3JUikC4ENAHEeMrd41Zxv3hVZjC9KtT8OvPVGJ"
        error = exceptions.InvalidArgumentError(f"The registration token {token} is invalid")

        classified = classify_firebase_error(error)

        assert token not in classified.message
        assert "<REDACTED>" in classified.message


@pytest.mark.unit
class TestClassifyTransportError:
    """Test mapping of non-Firebase exceptions."""

    @pytest.mark.parametrize("error", [ConnectionResetError("reset"), TimeoutError("read timed out"), OSError("dns")])
    def test_transport_errors_are_transient(self, error: Exception) -> None:
        classified = classify_transport_error(error)

        assert isinstance(classified, TransientSendError)
        assert type(error).__name__ in classified.message

    @pytest.mark.parametrize("error", [ValueError("Message.data must not contain non-string values"), TypeError("bad")])
    def test_argument_errors_are_permanent(self, error: Exception) -> None:
        classified = classify_transport_error(error)

        assert isinstance(classified, PermanentSendError)
        assert classified.message.startswith("Invalid message:")
