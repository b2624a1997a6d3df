"""
Clearance gate - One presentation attempt from capture to committed record.

scan() and lookup() run the reader and the rule chain. A Deny is committed
straight away; an Admit is returned as a preview and committed only when
the examiner calls admit() (or overridden with deny()) after inspecting
the profile. Either way each attempt ends in exactly one record.
"""

from dataclasses import dataclass, replace

from .access import ensure_gate_role
from .exceptions import ValidationFailed
from .audit import AuditRecorder
from .models import (
    AuthContext,
    Candidate,
    Decision,
    DecisionMetadata,
    ReasonCode,
    VerificationRecord,
    Verdict,
)
from .ports import StudentRepository
from .presentation import PresentationReader
from .verification import VerificationEngine

_REASON_CODES = {code.value: code for code in ReasonCode}


@dataclass
class ClearanceGate:
    """Examiner-facing entry point for scanning and committing decisions."""

    reader: PresentationReader
    engine: VerificationEngine
    recorder: AuditRecorder
    students: StudentRepository

    def scan(self, raw: str, actor: AuthContext) -> Verdict:
        """Verify an optically captured pass string."""
        ensure_gate_role(actor)
        return self._evaluate(self.reader.read_optical(raw), actor)

    def lookup(self, matric_number: str, actor: AuthContext) -> Verdict:
        """Verify a student found by manual matric number entry."""
        ensure_gate_role(actor)
        result = self.reader.read_manual(matric_number)
        if isinstance(result, Verdict):
            return self._record_denial(result, actor)
        return self._evaluate(result, actor)

    def admit(
        self,
        student_id: str,
        token_id: str,
        exam_hall: str,
        actor: AuthContext,
        notes: str | None = None,
    ) -> Verdict:
        """
        Commit an Admit for a previewed pass.

        The rule chain runs again against the student's current state, so
        a student whose clearance lapsed since the preview (or a commit
        that never had a preview) is recorded as a Deny instead. The
        conditional consume in the recorder still decides racing commits.

        Raises:
            AuthorizationError: Actor may not commit decisions
            ValidationFailed: exam_hall is missing
        """
        ensure_gate_role(actor)
        if not (exam_hall or "").strip():
            raise ValidationFailed("exam_hall is required to admit")

        student = self.students.find_by_id(student_id) if student_id else None
        if student is None:
            verdict = Verdict.deny(ReasonCode.STUDENT_NOT_FOUND)
        else:
            verdict = self.engine.verify(self.reader.read_trusted(student, token_id or ""))
        if not verdict.admitted:
            return self._record_denial(
                verdict, actor, exam_hall=exam_hall, notes=notes, token_id=token_id or None
            )

        record = self.recorder.record_decision(
            student_id,
            actor,
            Decision.ADMIT,
            DecisionMetadata(exam_hall=exam_hall, notes=notes, token_id=token_id),
        )
        return self._verdict_for(record)

    def deny(
        self,
        student_id: str | None,
        reason: str,
        actor: AuthContext,
        exam_hall: str | None = None,
        notes: str | None = None,
    ) -> Verdict:
        """Commit an examiner's Deny, e.g. after a photo mismatch."""
        record = self.recorder.record_decision(
            student_id,
            actor,
            Decision.DENY,
            DecisionMetadata(exam_hall=exam_hall, reason=reason, notes=notes),
        )
        return self._verdict_for(record)

    def _evaluate(self, candidate: Candidate, actor: AuthContext) -> Verdict:
        verdict = self.engine.verify(candidate)
        if verdict.admitted:
            return verdict
        return self._record_denial(verdict, actor)

    def _record_denial(
        self,
        verdict: Verdict,
        actor: AuthContext,
        exam_hall: str | None = None,
        notes: str | None = None,
        token_id: str | None = None,
    ) -> Verdict:
        record = self.recorder.record_decision(
            verdict.student_id,
            actor,
            Decision.DENY,
            DecisionMetadata(
                exam_hall=exam_hall,
                reason=verdict.reason.value,
                notes=notes,
                token_id=token_id or verdict.token_id,
                consumed_at=verdict.consumed_at,
            ),
        )
        return replace(verdict, record_id=record.id)

    def _verdict_for(self, record: VerificationRecord) -> Verdict:
        student = self.students.find_by_id(record.student_id) if record.student_id else None
        if record.decision is Decision.ADMIT and student is not None:
            return Verdict.admit(student, record_id=record.id)
        return Verdict.deny(
            _REASON_CODES.get(record.reason, record.reason),
            student_id=record.student_id,
            profile=student.profile() if student else None,
            consumed_at=record.consumed_at,
            record_id=record.id,
        )
