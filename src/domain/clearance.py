"""
Clearance issuance domain service.

A pass may only be issued to a student who is both registration-complete
and payment-verified. Each student holds at most one live (unconsumed)
token; asking again before it is consumed returns the same token, so a
pass that was already printed stays valid. Once the token is consumed at
the gate, the next request mints a fresh one.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .exceptions import ClearanceIncompleteError, NotFoundError, StateConflictError
from .models import ClearancePayload, IssuedPass, Student
from .ports import PassRenderer, StudentRepository, TokenCodec

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ClearanceIssuer:
    """
    Domain service that mints or reuses single-use clearance tokens.
    """

    students: StudentRepository
    codec: TokenCodec
    renderer: PassRenderer
    issuer: str
    clock: Callable[[], datetime] = field(default=utc_now)

    def issue_or_reuse(self, student_id: str) -> ClearancePayload:
        """
        Build the clearance payload for a student, minting a token if needed.

        Args:
            student_id: Student primary key

        Returns:
            Payload bound to the student's live token

        Raises:
            NotFoundError: Student does not exist
            ClearanceIncompleteError: Registration or payment not complete
        """
        student = self._load(student_id)
        if not student.is_cleared:
            raise ClearanceIncompleteError(student_id)

        if not student.has_live_token:
            token = self._generate_token()
            if self.students.set_token(student_id, token):
                logger.info("Minted clearance token for student %s", student_id)
            else:
                # Lost a concurrent issuance; reuse whatever token won.
                logger.info("Reusing concurrently minted token for student %s", student_id)
            student = self._load(student_id)
            if not student.has_live_token:
                raise StateConflictError(student_id)

        return self._build_payload(student)

    def issue_pass(self, student_id: str) -> IssuedPass:
        """Issue (or reuse) and return the sealed pass with its rendered barcode."""
        payload = self.issue_or_reuse(student_id)
        sealed = self.codec.encode(payload)
        return IssuedPass(payload=payload, sealed=sealed, qr_png_base64=self.renderer.render(sealed))

    def _load(self, student_id: str) -> Student:
        student = self.students.find_by_id(student_id)
        if student is None:
            raise NotFoundError(student_id)
        return student

    def _build_payload(self, student: Student) -> ClearancePayload:
        return ClearancePayload(
            student_id=student.id,
            token_id=student.clearance_token,
            issuer=self.issuer,
            issued_at=self.clock(),
            name=student.name,
            matric_number=student.matric_number,
            department=student.department,
            faculty=student.faculty,
            photo_url=student.photo_url,
        )

    def _generate_token(self) -> str:
        """
        Generate a 256-bit clearance token.

        Uses secrets module for cryptographic randomness.
        """
        return secrets.token_hex(TOKEN_BYTES)
