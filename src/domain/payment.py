"""
Payment confirmation domain service.

Confirms a payment reference with the provider and, on success, marks
the student payment-verified. Provider timeouts and outages fail closed:
they surface as UpstreamError and never as a verified payment.

A fixed test reference can force success, but only when test mode is
enabled; settings refuse test mode in a production environment.
"""

import logging
from dataclasses import dataclass

from .access import ensure_owner_or_admin
from .exceptions import NotFoundError, ValidationFailed
from .models import AuthContext, PaymentOutcome
from .ports import PaymentProvider, PaymentRepository, StudentRepository

logger = logging.getLogger(__name__)


@dataclass
class PaymentService:
    """Domain service for examination fee confirmation."""

    provider: PaymentProvider
    payments: PaymentRepository
    students: StudentRepository
    test_mode: bool = False
    test_reference: str | None = None

    def confirm(self, student_id: str, reference: str, actor: AuthContext) -> PaymentOutcome:
        """
        Verify a payment reference for a student.

        Args:
            student_id: Student the payment belongs to
            reference: Provider payment reference
            actor: The student themself, or an admin

        Returns:
            Provider outcome; success means the student is now payment-verified

        Raises:
            AuthorizationError: Actor may not act for this student
            ValidationFailed: Empty reference
            NotFoundError: Student does not exist
            UpstreamError: Provider timed out or is unreachable
        """
        ensure_owner_or_admin(actor, student_id)
        reference = reference.strip()
        if not reference:
            raise ValidationFailed("payment reference is required")
        if self.students.find_by_id(student_id) is None:
            raise NotFoundError(student_id)

        if self._is_test_reference(reference):
            logger.warning("Accepting test payment reference for student %s", student_id)
            outcome = PaymentOutcome(success=True, raw_response={"test_mode": True})
        else:
            outcome = self.provider.verify(reference)

        self.payments.record_attempt(reference, student_id, outcome.success, outcome.raw_response)

        if outcome.success:
            self.students.set_payment_verified(student_id)
            logger.info("Payment %s verified for student %s", reference, student_id)
        else:
            logger.warning("Payment %s not verified for student %s", reference, student_id)
        return outcome

    def _is_test_reference(self, reference: str) -> bool:
        return self.test_mode and bool(self.test_reference) and reference == self.test_reference
