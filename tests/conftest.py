"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from fcm_dispatch.core.dispatcher import Dispatcher
from fcm_dispatch.core.retry import RetryPolicy
from fcm_dispatch.types import NotificationRequest, RecipientKind
from fcm_dispatch.utils.logging import clear_correlation_id
from tests.fixtures.senders import FakeSender, RecordingSleep, RequestFactory


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> Iterator[None]:
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.fixture
def make_request() -> RequestFactory:
    """Factory building valid NotificationRequests with overridable fields."""

    def _make(
        recipient: str = "device-token-1",
        *,
        title: str = "Hello",
        body: str = "World",
        attributes: dict[str, str] | None = None,
        recipient_kind: RecipientKind = RecipientKind.TOKEN,
    ) -> NotificationRequest:
        return NotificationRequest.build(
            recipient,
            title,
            body,
            attributes=attributes,
            recipient_kind=recipient_kind,
        )

    return _make


@pytest.fixture
def fake_sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fast_retry_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay_seconds=0.001, max_delay_seconds=0.01)


@pytest.fixture
def dispatcher(fake_sender: FakeSender, recording_sleep: RecordingSleep) -> Dispatcher:
    return Dispatcher(fake_sender, sleep=recording_sleep)
