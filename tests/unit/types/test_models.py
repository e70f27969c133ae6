"""Tests for request, outcome and result models."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from fcm_dispatch.errors import ErrorKind, RequestValidationError
from fcm_dispatch.types import (
    BatchResult,
    DelayedDispatch,
    DispatchOutcome,
    DispatchStatus,
    NotificationRequest,
    RecipientKind,
    ScheduleAck,
)


@pytest.mark.unit
class TestNotificationRequest:
    def test_build_valid_request(self) -> None:
        request = NotificationRequest.build(
            "device-token",
            "Title",
            "Body",
            attributes={"type": "2", "read": "false"},
        )

        assert request.recipient == "device-token"
        assert request.title == "Title"
        assert request.body == "Body"
        assert request.attributes == {"type": "2", "read": "false"}
        assert request.recipient_kind is RecipientKind.TOKEN

    def test_attributes_default_to_empty(self) -> None:
        assert NotificationRequest.build("t", "Title", "Body").attributes == {}

    @pytest.mark.parametrize(
        ("recipient", "title", "body", "field"),
        [
            ("", "Title", "Body", "recipient"),
            ("token", "", "Body", "title"),
            ("token", "Title", "", "body"),
            ("   ", "Title", "Body", "recipient"),
        ],
    )
    def test_empty_fields_raise_request_validation_error(
        self,
        recipient: str,
        title: str,
        body: str,
        field: str,
    ) -> None:
        with pytest.raises(RequestValidationError) as exc_info:
            _ = NotificationRequest.build(recipient, title, body)

        assert [error["field"] for error in exc_info.value.errors] == [field]
        assert isinstance(exc_info.value, ValueError)

    def test_non_string_attribute_values_are_rejected(self) -> None:
        with pytest.raises(RequestValidationError) as exc_info:
            _ = NotificationRequest.build("token", "Title", "Body", attributes={"count": 3})  # pyright: ignore[reportArgumentType]

        assert exc_info.value.errors[0]["field"] == "attributes.count"

    def test_direct_construction_raises_pydantic_error(self) -> None:
        with pytest.raises(ValidationError):
            _ = NotificationRequest(recipient="", title="Title", body="Body")

    def test_unknown_fields_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _ = NotificationRequest.model_validate({"recipient": "t", "title": "T", "body": "B", "priority": "high"})

    def test_request_is_immutable(self) -> None:
        request = NotificationRequest.build("token", "Title", "Body")

        with pytest.raises(ValidationError):
            request.title = "Other"  # pyright: ignore[reportAttributeAccessIssue]

    def test_attributes_are_read_only(self) -> None:
        source = {"type": "2"}
        request = NotificationRequest.build("token", "Title", "Body", attributes=source)

        with pytest.raises(TypeError):
            request.attributes["type"] = "3"  # pyright: ignore[reportIndexIssue]
        source["type"] = "3"

        assert request.attributes == {"type": "2"}
        assert request.model_dump()["attributes"] == {"type": "2"}

    def test_topic_prefix_is_stripped(self) -> None:
        request = NotificationRequest.build("/topics/news", "Title", "Body", recipient_kind=RecipientKind.TOPIC)

        assert request.recipient == "news"
        assert request.recipient_kind is RecipientKind.TOPIC

    def test_token_keeps_slashes_untouched(self) -> None:
        request = NotificationRequest.build("/topics/news", "Title", "Body")

        assert request.recipient == "/topics/news"

    def test_invalid_topic_name_is_rejected(self) -> None:
        with pytest.raises(RequestValidationError, match="Invalid request"):
            _ = NotificationRequest.build("breaking news!", "Title", "Body", recipient_kind=RecipientKind.TOPIC)


@pytest.mark.unit
class TestDelayedDispatch:
    def test_build_valid(self) -> None:
        request = NotificationRequest.build("token", "Title", "Body")

        delayed = DelayedDispatch.build(request, 5)

        assert delayed.request is request
        assert delayed.delay_seconds == 5.0

    def test_negative_delay_is_rejected(self) -> None:
        request = NotificationRequest.build("token", "Title", "Body")

        with pytest.raises(RequestValidationError) as exc_info:
            _ = DelayedDispatch.build(request, -1)

        assert str(exc_info.value) == "Invalid delayed dispatch: delay_seconds"


@pytest.mark.unit
class TestDispatchOutcome:
    def test_sent_outcome(self) -> None:
        outcome = DispatchOutcome.sent("token", "projects/p/messages/1", attempts=2)

        assert outcome.is_sent
        assert outcome.status is DispatchStatus.SENT
        assert outcome.error_kind is None
        assert outcome.error_message is None

    def test_failed_outcome(self) -> None:
        outcome = DispatchOutcome.failed("token", ErrorKind.PERMANENT, "unregistered", attempts=1)

        assert not outcome.is_sent
        assert outcome.provider_message_id is None

    def test_cancelled_outcome_may_have_zero_attempts(self) -> None:
        outcome = DispatchOutcome.failed("token", ErrorKind.CANCELLED, "deadline", attempts=0)

        assert outcome.attempts == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"status": DispatchStatus.SENT, "attempts": 1},
            {"status": DispatchStatus.SENT, "attempts": 0, "provider_message_id": "id"},
            {"status": DispatchStatus.SENT, "attempts": 1, "provider_message_id": "id", "error_kind": ErrorKind.PERMANENT},
            {"status": DispatchStatus.FAILED, "attempts": 1},
            {"status": DispatchStatus.FAILED, "attempts": 0, "error_kind": ErrorKind.TRANSIENT},
            {"status": DispatchStatus.FAILED, "attempts": 1, "error_kind": ErrorKind.PERMANENT, "provider_message_id": "id"},
        ],
    )
    def test_inconsistent_outcomes_are_rejected(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            _ = DispatchOutcome(recipient="token", **kwargs)  # pyright: ignore[reportArgumentType]


@pytest.mark.unit
class TestBatchResult:
    def test_counts(self) -> None:
        result = BatchResult(
            outcomes=(
                DispatchOutcome.sent("a", "id-a", attempts=1),
                DispatchOutcome.failed("b", ErrorKind.PERMANENT, "bad", attempts=1),
                DispatchOutcome.failed("c", ErrorKind.CANCELLED, "late", attempts=0),
            )
        )

        assert result.total == 3
        assert result.sent_count == 1
        assert result.failed_count == 2

    def test_empty_result(self) -> None:
        result = BatchResult()

        assert (result.total, result.sent_count, result.failed_count) == (0, 0, 0)

    def test_to_dict_renders_counts_and_outcomes(self) -> None:
        result = BatchResult(
            outcomes=(
                DispatchOutcome.sent("a", "id-a", attempts=2),
                DispatchOutcome.failed("b", ErrorKind.PERMANENT, "bad", attempts=1),
            )
        )

        assert result.to_dict() == {
            "total": 2,
            "sentCount": 1,
            "failedCount": 1,
            "outcomes": [
                {
                    "recipient": "a",
                    "status": "sent",
                    "attempts": 2,
                    "providerMessageId": "id-a",
                    "errorKind": None,
                    "errorMessage": None,
                },
                {
                    "recipient": "b",
                    "status": "failed",
                    "attempts": 1,
                    "providerMessageId": None,
                    "errorKind": "permanent",
                    "errorMessage": "bad",
                },
            ],
        }


@pytest.mark.unit
def test_schedule_ack_is_immutable() -> None:
    ack = ScheduleAck(
        schedule_id="abc",
        recipient="token",
        scheduled_for=datetime(2024, 1, 1, tzinfo=UTC),
        delay_seconds=5.0,
    )

    with pytest.raises(AttributeError):
        ack.delay_seconds = 1.0  # pyright: ignore[reportAttributeAccessIssue]
