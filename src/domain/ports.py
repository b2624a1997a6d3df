"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from typing import Any, Protocol

from .models import (
    AuthContext,
    ClearancePayload,
    ExaminerStats,
    PaymentOutcome,
    Student,
    VerificationRecord,
)


class StudentRepository(Protocol):
    """Port interface for student persistence (token fields owned here)."""

    def find_by_id(self, student_id: str) -> Student | None:
        """Fetch a student by primary key."""
        ...

    def find_by_matric(self, matric_number: str) -> Student | None:
        """
        Case-insensitive exact lookup by matriculation number.

        Args:
            matric_number: Matric number, already stripped by the caller

        Returns:
            Matching student, or None
        """
        ...

    def set_token(self, student_id: str, token: str) -> bool:
        """
        Store a freshly minted clearance token.

        Conditional write: succeeds only while the student has no live
        (unconsumed) token, so two concurrent issuances cannot both rotate.
        Storing a token resets token_consumed and token_consumed_at.

        Returns:
            True if stored, False if a live token already exists
        """
        ...

    def set_payment_verified(self, student_id: str) -> bool:
        """
        Mark a student's payment as verified.

        Returns:
            True if the student exists
        """
        ...

    def count_overview(self) -> tuple[int, int, int, int]:
        """
        Count students for the admin overview.

        Returns:
            (total, registration_complete, payment_verified, token_consumed)
        """
        ...


class VerificationRepository(Protocol):
    """Port interface for the append-only verification audit trail."""

    def insert(self, record: VerificationRecord) -> None:
        """Append a record. Records are never updated or deleted."""
        ...

    def commit_admission(self, record: VerificationRecord) -> bool:
        """
        Consume the record's token and append the Admit row atomically.

        The consume step is a single conditional write
        (token_consumed FALSE -> TRUE where clearance_token matches),
        never a read-then-write. Both writes share one transaction.

        Returns:
            True if the token was consumed and the record appended,
            False (nothing written) if the token was already consumed
            or is no longer the student's current token
        """
        ...

    def query_recent(self, limit: int, examiner_id: str | None = None) -> list[VerificationRecord]:
        """Most recent records first, optionally for one examiner."""
        ...

    def count_by_examiner(self, examiner_id: str) -> ExaminerStats:
        """Totals of recorded decisions for one examiner."""
        ...


class AccountRepository(Protocol):
    """Port interface for the authentication context."""

    def authenticate(self, username: str, password: str) -> AuthContext | None:
        """
        Resolve credentials to an actor.

        Implementations must compare passwords in constant time and must
        not reveal whether the username exists.
        """
        ...


class PaymentRepository(Protocol):
    """Port interface for payment attempt persistence."""

    def record_attempt(
        self, reference: str, student_id: str, verified: bool, provider_response: dict[str, Any]
    ) -> None:
        """Store the outcome of a provider verification for a reference."""
        ...


class PaymentProvider(Protocol):
    """Port interface for the external payment gateway."""

    def verify(self, reference: str) -> PaymentOutcome:
        """
        Verify a payment reference with the provider.

        Raises:
            UpstreamError: On timeout or when the provider is unreachable
        """
        ...


class TokenCodec(Protocol):
    """Port interface for sealing clearance payloads."""

    def encode(self, payload: ClearancePayload) -> str:
        """Seal a payload into an opaque, barcode-safe string."""
        ...

    def decode(self, sealed: str) -> ClearancePayload:
        """
        Open a sealed string.

        Raises:
            SignatureError: For any failure, whatever its cause
        """
        ...


class PassRenderer(Protocol):
    """Port interface for rendering a sealed pass as a 2-D barcode."""

    def render(self, sealed: str) -> str:
        """Return a base64-encoded PNG of the barcode."""
        ...


class BroadcastTransport(Protocol):
    """Port interface for the dashboard push channel."""

    def join(self, session_id: str, group: str) -> None:
        ...

    def leave(self, session_id: str) -> None:
        ...

    def emit(self, group: str, event: str, payload: dict[str, Any]) -> None:
        ...


class FrameSource(Protocol):
    """Port interface for a camera-like frame producer."""

    def open(self) -> None:
        ...

    def read(self) -> Any | None:
        """Grab the current frame, or None if no frame is ready."""
        ...

    def release(self) -> None:
        """Release the device. Must be safe to call more than once."""
        ...


class BarcodeDecoder(Protocol):
    """Port interface for a single 2-D barcode decode attempt."""

    def decode(self, frame: Any) -> str | None:
        ...
