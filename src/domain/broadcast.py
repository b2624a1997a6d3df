"""
Event broadcaster - Fans recorded decisions out to dashboard sessions.

Delivery is best-effort and at-least-once per connected session, with no
backlog: a session that joins after an event never receives it and must
pull recent history from the read side. A failed emit is logged and never
propagates, since the decision it describes is already committed.
"""

import logging
from dataclasses import dataclass
from typing import Any

from .exceptions import ValidationFailed
from .models import Decision, Group, VerificationRecord
from .ports import BroadcastTransport

logger = logging.getLogger(__name__)

EVENT_APPROVED = "verification:approved"
EVENT_DENIED = "verification:denied"


def record_event(record: VerificationRecord) -> dict[str, Any]:
    """JSON-ready event body for a verification record."""
    return {
        "id": record.id,
        "examiner_id": record.examiner_id,
        "student_id": record.student_id,
        "decision": record.decision.value,
        "reason": record.reason,
        "exam_hall": record.exam_hall,
        "notes": record.notes,
        "consumed_at": record.consumed_at.isoformat() if record.consumed_at else None,
        "created_at": record.created_at.isoformat(),
    }


@dataclass
class EventBroadcaster:
    """Publishes verification records to the examiners and admins groups."""

    transport: BroadcastTransport

    def subscribe(self, session_id: str, group: Group | str) -> None:
        try:
            group = Group(group)
        except ValueError:
            raise ValidationFailed(f"unknown group: {group}") from None
        self.transport.join(session_id, group.value)
        logger.info("Session %s joined %s", session_id, group.value)

    def unsubscribe(self, session_id: str) -> None:
        self.transport.leave(session_id)

    def publish(self, record: VerificationRecord) -> None:
        """Emit a committed record to every group. Never raises."""
        event = EVENT_APPROVED if record.decision is Decision.ADMIT else EVENT_DENIED
        payload = record_event(record)
        for group in Group:
            try:
                self.transport.emit(group.value, event, payload)
            except Exception:
                logger.exception("Failed to publish %s for record %s to %s", event, record.id, group.value)
