import datetime

import pytest
from freezegun import freeze_time

from rightsize.configuration import FeedbackConfiguration
from rightsize.feedback import FeedbackDispatcher
from rightsize.types import AutomationFeedback, PacketKind
from tests.helpers import RecordingTransport, command


@pytest.fixture
def feedback() -> AutomationFeedback:
    return AutomationFeedback.failed(command(id="a1"), "dry run enabled")


@freeze_time("2024-03-01 12:00:00")
async def test_envelope_defaults(
    transport: RecordingTransport, feedback: AutomationFeedback
) -> None:
    dispatcher = FeedbackDispatcher(transport)
    package = await dispatcher.dispatch(feedback)

    assert transport.packages == [package]
    assert package.kind == PacketKind.automation_feedback
    assert package.priority == 10
    assert package.retries == 5
    assert package.expiry_count == 0
    assert package.expiry_time == datetime.datetime(
        2024, 3, 1, 12, 30, tzinfo=datetime.timezone.utc
    )
    assert package.data == feedback


@freeze_time("2024-03-01 12:00:00")
async def test_configured_qos(
    transport: RecordingTransport, feedback: AutomationFeedback
) -> None:
    config = FeedbackConfiguration(priority=1, expiry="1h", expiry_count=100, retries=0)
    package = await FeedbackDispatcher(transport, config).dispatch(feedback)
    assert (package.priority, package.expiry_count, package.retries) == (1, 100, 0)
    assert package.expiry_time == datetime.datetime(
        2024, 3, 1, 13, 0, tzinfo=datetime.timezone.utc
    )


async def test_sync_transport(feedback: AutomationFeedback) -> None:
    piped = []

    class SyncTransport:
        def pipe(self, package) -> None:
            piped.append(package)

    package = await FeedbackDispatcher(SyncTransport()).dispatch(feedback)
    assert piped == [package]


async def test_transport_errors_are_logged(
    feedback: AutomationFeedback, captured_logs
) -> None:
    transport = RecordingTransport(error=ConnectionError("gateway unavailable"))
    assert await FeedbackDispatcher(transport).dispatch(feedback) is None

    errors = [m.record for m in captured_logs if m.record["level"].name == "ERROR"]
    assert errors
    assert "gateway unavailable" in errors[0]["message"]
    assert errors[0]["extra"]["automation_id"] == "a1"
