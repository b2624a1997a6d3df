"""
Unit tests for EventBroadcaster.
"""

from datetime import datetime, timezone

import pytest

from src.domain.broadcast import EVENT_APPROVED, EVENT_DENIED, EventBroadcaster, record_event
from src.domain.exceptions import ValidationFailed
from src.domain.models import Decision, Group, VerificationRecord
from tests.fakes import RecordingTransport

CREATED = datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)


def _record(decision: Decision = Decision.ADMIT, **overrides) -> VerificationRecord:
    values = {
        "id": "rec-1",
        "examiner_id": "examiner-1",
        "student_id": "stu-1",
        "decision": decision,
        "reason": None if decision is Decision.ADMIT else "other",
        "exam_hall": "Hall A",
        "notes": None,
        "token_id": "secret-token",
        "consumed_at": CREATED if decision is Decision.ADMIT else None,
        "created_at": CREATED,
    }
    values.update(overrides)
    return VerificationRecord(**values)


class TestSubscription:
    def test_subscribe_joins_group(self) -> None:
        transport = RecordingTransport()

        EventBroadcaster(transport).subscribe("sess-1", "admins")

        assert transport.members == {"sess-1": "admins"}

    def test_subscribe_accepts_enum(self) -> None:
        transport = RecordingTransport()

        EventBroadcaster(transport).subscribe("sess-1", Group.EXAMINERS)

        assert transport.members == {"sess-1": "examiners"}

    def test_unknown_group_is_rejected(self) -> None:
        with pytest.raises(ValidationFailed):
            EventBroadcaster(RecordingTransport()).subscribe("sess-1", "students")

    def test_unsubscribe_leaves(self) -> None:
        transport = RecordingTransport()
        broadcaster = EventBroadcaster(transport)
        broadcaster.subscribe("sess-1", "admins")

        broadcaster.unsubscribe("sess-1")

        assert transport.members == {}


class TestPublish:
    def test_admit_emits_approved_to_every_group(self) -> None:
        transport = RecordingTransport()

        EventBroadcaster(transport).publish(_record())

        assert [(g, e) for g, e, _ in transport.emitted] == [
            ("examiners", EVENT_APPROVED),
            ("admins", EVENT_APPROVED),
        ]

    def test_deny_emits_denied(self) -> None:
        transport = RecordingTransport()

        EventBroadcaster(transport).publish(_record(Decision.DENY))

        assert {e for _, e, _ in transport.emitted} == {EVENT_DENIED}

    def test_one_failing_group_does_not_block_the_other(self) -> None:
        transport = RecordingTransport(fail_on={"examiners"})

        EventBroadcaster(transport).publish(_record())

        assert [g for g, _, _ in transport.emitted] == ["admins"]


class TestRecordEvent:
    def test_event_is_json_ready(self) -> None:
        event = record_event(_record())

        assert event["decision"] == "admit"
        assert event["created_at"] == CREATED.isoformat()
        assert event["consumed_at"] == CREATED.isoformat()

    def test_event_does_not_carry_the_token(self) -> None:
        assert "token_id" not in record_event(_record())
