"""
Audit recorder - Commits gate decisions to the append-only trail.

Every committed decision produces exactly one VerificationRecord.
Admission is the single serialization point of the system: the token is
consumed by one conditional write (compare-and-set) in the same
transaction as the Admit row. When two terminals commit the same token,
the loser's attempt is recorded as a Deny with already_used, even though
its preview passed moments earlier.

Commit-then-notify: the record is durable before it is published, and a
publish failure cannot undo or block the commit.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from .access import ensure_gate_role
from .broadcast import EventBroadcaster
from .clearance import utc_now
from .exceptions import NotFoundError, ValidationFailed
from .models import (
    DENIAL_REASONS,
    AuthContext,
    Decision,
    DecisionMetadata,
    ReasonCode,
    VerificationRecord,
)
from .ports import StudentRepository, VerificationRepository

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    return str(uuid.uuid4())


@dataclass
class AuditRecorder:
    """Domain service that commits Admit/Deny decisions."""

    verifications: VerificationRepository
    students: StudentRepository
    broadcaster: EventBroadcaster
    clock: Callable[[], datetime] = field(default=utc_now)
    id_factory: Callable[[], str] = field(default=new_record_id)

    def record_decision(
        self,
        student_id: str | None,
        actor: AuthContext,
        decision: Decision | str,
        metadata: DecisionMetadata,
    ) -> VerificationRecord:
        """
        Commit a decision and publish it.

        Args:
            student_id: Student the decision concerns; None for a pass that
                could not be attributed to anyone
            actor: Authenticated examiner or admin
            decision: ADMIT or DENY
            metadata: Hall, reason, notes and (for ADMIT) the previewed token

        Returns:
            The committed record. An ADMIT that lost the consume race comes
            back as a DENY record with reason already_used.

        Raises:
            AuthorizationError: Actor may not commit decisions
            ValidationFailed: Missing hall/token on ADMIT, unknown reason on DENY
            NotFoundError: DENY names a student that does not exist
        """
        ensure_gate_role(actor)
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationFailed(f"unknown decision: {decision}") from None

        if decision is Decision.ADMIT:
            record = self._commit_admit(student_id, actor, metadata)
        else:
            record = self._commit_deny(student_id, actor, metadata)

        self.broadcaster.publish(record)
        return record

    def _commit_admit(
        self, student_id: str | None, actor: AuthContext, metadata: DecisionMetadata
    ) -> VerificationRecord:
        hall = (metadata.exam_hall or "").strip()
        if not hall:
            raise ValidationFailed("exam_hall is required to admit")
        if not student_id or not metadata.token_id:
            raise ValidationFailed("student_id and token_id are required to admit")

        record = self._new_record(
            actor, student_id, Decision.ADMIT, None, hall, metadata.notes, metadata.token_id
        )
        # The admit instant doubles as the token's consumption timestamp.
        record = replace(record, consumed_at=record.created_at)
        if self.verifications.commit_admission(record):
            logger.info("Admitted student %s to %s (examiner %s)", student_id, hall, actor.user_id)
            return record

        # The conditional consume matched nothing: another commit won, or
        # the pass was superseded since the preview.
        student = self.students.find_by_id(student_id)
        consumed_at = None
        if student is None:
            reason = ReasonCode.STUDENT_NOT_FOUND
        elif student.clearance_token != metadata.token_id:
            reason = ReasonCode.TOKEN_MISMATCH
        else:
            reason = ReasonCode.ALREADY_USED
            consumed_at = student.token_consumed_at

        logger.warning(
            "Admission of student %s rejected at commit: %s (examiner %s)",
            student_id,
            reason.value,
            actor.user_id,
        )
        denied = self._new_record(
            actor,
            student_id if student is not None else None,
            Decision.DENY,
            reason.value,
            hall,
            metadata.notes,
            metadata.token_id,
            consumed_at,
        )
        self.verifications.insert(denied)
        return denied

    def _commit_deny(
        self, student_id: str | None, actor: AuthContext, metadata: DecisionMetadata
    ) -> VerificationRecord:
        # Reasons arrive as enum members or plain strings.
        reason = metadata.reason.value if isinstance(metadata.reason, Enum) else metadata.reason
        if reason not in DENIAL_REASONS:
            raise ValidationFailed(f"unknown denial reason: {reason}")
        if student_id is not None and self.students.find_by_id(student_id) is None:
            raise NotFoundError(student_id)

        hall = (metadata.exam_hall or "").strip() or None
        record = self._new_record(
            actor,
            student_id,
            Decision.DENY,
            reason,
            hall,
            metadata.notes,
            metadata.token_id,
            metadata.consumed_at,
        )
        self.verifications.insert(record)
        logger.info("Denied student %s: %s (examiner %s)", student_id or "-", reason, actor.user_id)
        return record

    def _new_record(
        self,
        actor: AuthContext,
        student_id: str | None,
        decision: Decision,
        reason: str | None,
        exam_hall: str | None,
        notes: str | None,
        token_id: str | None,
        consumed_at: datetime | None = None,
    ) -> VerificationRecord:
        return VerificationRecord(
            id=self.id_factory(),
            examiner_id=actor.user_id,
            student_id=student_id,
            decision=decision,
            reason=reason,
            exam_hall=exam_hall,
            notes=notes,
            token_id=token_id,
            consumed_at=consumed_at,
            created_at=self.clock(),
        )
