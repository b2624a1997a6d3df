"""
Verification engine - Ordered clearance rule chain.

Rules run in a fixed order and stop at the first failure; the order
decides which reason code is surfaced when several conditions fail at
once:

1. payload authenticated          -> invalid_signature
2. issuer marker matches          -> issuer_mismatch
3. student exists                 -> student_not_found
4. token is the student's current -> token_mismatch
5. payment verified               -> payment_not_verified
6. registration complete          -> registration_incomplete
7. token not yet consumed         -> already_used (with consumed_at)

The engine never writes. An Admit verdict is a preview: the token is
consumed only when the examiner commits through the AuditRecorder, so the
examiner can still deny after inspecting the profile.
"""

import secrets
from dataclasses import dataclass

from .models import Candidate, ReasonCode, Verdict
from .ports import StudentRepository


@dataclass
class VerificationEngine:
    """Read-only rule chain producing Admit or Deny."""

    students: StudentRepository
    issuer: str

    def verify(self, candidate: Candidate) -> Verdict:
        """
        Run the rule chain against a presentation candidate.

        Args:
            candidate: Normalized optical or manual presentation

        Returns:
            Admit verdict with the display profile, or Deny with a reason code
        """
        payload = candidate.payload
        if not candidate.authenticated or payload is None:
            return Verdict.deny(ReasonCode.INVALID_SIGNATURE)

        if payload.issuer != self.issuer:
            return Verdict.deny(ReasonCode.ISSUER_MISMATCH)

        student = self.students.find_by_id(payload.student_id)
        if student is None:
            return Verdict.deny(ReasonCode.STUDENT_NOT_FOUND)

        if not _same_token(payload.token_id, student.clearance_token):
            return Verdict.deny(ReasonCode.TOKEN_MISMATCH, student_id=student.id)

        if not student.payment_verified:
            return Verdict.deny(ReasonCode.PAYMENT_NOT_VERIFIED, student_id=student.id)

        if not student.registration_complete:
            return Verdict.deny(ReasonCode.REGISTRATION_INCOMPLETE, student_id=student.id)

        if student.token_consumed:
            return Verdict.deny(
                ReasonCode.ALREADY_USED,
                student_id=student.id,
                consumed_at=student.token_consumed_at,
            )

        return Verdict.admit(student)


def _same_token(presented: str, current: str | None) -> bool:
    if not presented or not current:
        return False
    return secrets.compare_digest(presented.encode(), current.encode())
