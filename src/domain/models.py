"""
Domain models - Value types for the clearance-token lifecycle.

Students, sealed pass payloads, presentation candidates, gate verdicts
and the append-only verification record. All types are immutable
dataclasses; persistence shapes live in the adapters.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Roles carried by the authenticated actor."""

    STUDENT = "student"
    EXAMINER = "examiner"
    ADMIN = "admin"


class Decision(str, Enum):
    """The two terminal gate decisions."""

    ADMIT = "admit"
    DENY = "deny"


class ReasonCode(str, Enum):
    """
    Reason codes surfaced by the gate.

    The first seven are produced by the verification rule chain, in rule
    order. IDENTITY_NOT_FOUND comes from the manual lookup path and
    CLEARANCE_INCOMPLETE from issuance.
    """

    INVALID_SIGNATURE = "invalid_signature"
    ISSUER_MISMATCH = "issuer_mismatch"
    STUDENT_NOT_FOUND = "student_not_found"
    TOKEN_MISMATCH = "token_mismatch"
    PAYMENT_NOT_VERIFIED = "payment_not_verified"
    REGISTRATION_INCOMPLETE = "registration_incomplete"
    ALREADY_USED = "already_used"
    IDENTITY_NOT_FOUND = "identity_not_found"
    CLEARANCE_INCOMPLETE = "clearance_incomplete"


class DenialReason(str, Enum):
    """Reasons an examiner may select when denying after inspection."""

    PHOTO_MISMATCH = "photo_mismatch"
    EXPIRED_SIGNATURE = "expired_signature"
    WRONG_VENUE = "wrong_venue"
    OTHER = "other"


DENIAL_REASONS = frozenset(r.value for r in DenialReason) | frozenset(r.value for r in ReasonCode)

REASON_MESSAGES = {
    ReasonCode.INVALID_SIGNATURE.value: "Pass could not be authenticated",
    ReasonCode.ISSUER_MISMATCH.value: "Pass was not issued by this authority",
    ReasonCode.STUDENT_NOT_FOUND.value: "Student on the pass does not exist",
    ReasonCode.TOKEN_MISMATCH.value: "Pass has been superseded by a newer one",
    ReasonCode.PAYMENT_NOT_VERIFIED.value: "Examination fee payment is not verified",
    ReasonCode.REGISTRATION_INCOMPLETE.value: "Student registration is incomplete",
    ReasonCode.ALREADY_USED.value: "Pass has already been used for entry",
    ReasonCode.IDENTITY_NOT_FOUND.value: "No student matches that matric number",
    ReasonCode.CLEARANCE_INCOMPLETE.value: "Student is not cleared for a pass",
    DenialReason.PHOTO_MISMATCH.value: "Student does not match the photo on record",
    DenialReason.EXPIRED_SIGNATURE.value: "Pass signature has expired",
    DenialReason.WRONG_VENUE.value: "Student is at the wrong venue",
    DenialReason.OTHER.value: "Entry denied by the examiner",
}


class Group(str, Enum):
    """Dashboard broadcast groups."""

    EXAMINERS = "examiners"
    ADMINS = "admins"


class CaptureSource(str, Enum):
    """How a candidate was presented at the gate."""

    OPTICAL = "optical"
    MANUAL = "manual"


@dataclass(frozen=True)
class StudentProfile:
    """Display profile returned with an Admit preview."""

    id: str
    name: str
    matric_number: str
    department: str
    faculty: str
    level: str
    photo_url: str


@dataclass(frozen=True)
class Student:
    """
    Student as seen by the clearance subsystem.

    Token fields (clearance_token, token_consumed, token_consumed_at) are
    owned here; identity and clearance flags are owned by registration.
    """

    id: str
    name: str
    matric_number: str
    department: str
    faculty: str
    level: str
    photo_url: str
    registration_complete: bool = False
    payment_verified: bool = False
    clearance_token: str | None = None
    token_consumed: bool = False
    token_consumed_at: datetime | None = None

    @property
    def is_cleared(self) -> bool:
        return self.registration_complete and self.payment_verified

    @property
    def has_live_token(self) -> bool:
        return self.clearance_token is not None and not self.token_consumed

    def profile(self) -> StudentProfile:
        return StudentProfile(
            id=self.id,
            name=self.name,
            matric_number=self.matric_number,
            department=self.department,
            faculty=self.faculty,
            level=self.level,
            photo_url=self.photo_url,
        )


@dataclass(frozen=True)
class ClearancePayload:
    """Plaintext sealed into a pass."""

    student_id: str
    token_id: str
    issuer: str
    issued_at: datetime
    name: str
    matric_number: str
    department: str
    faculty: str
    photo_url: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["issued_at"] = self.issued_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ClearancePayload":
        """
        Build a payload from its dict form, strictly.

        Raises:
            ValueError: On missing or unexpected keys, non-string values,
                or an issued_at that is not a timezone-aware ISO timestamp
        """
        if not isinstance(data, dict):
            raise ValueError("payload must be an object")

        expected = {f.name for f in fields(cls)}
        if set(data) != expected:
            raise ValueError("payload keys do not match")
        if not all(isinstance(value, str) for value in data.values()):
            raise ValueError("payload values must be strings")

        issued_at = datetime.fromisoformat(data["issued_at"])
        if issued_at.tzinfo is None:
            raise ValueError("issued_at must be timezone-aware")

        return cls(**{**data, "issued_at": issued_at})


@dataclass(frozen=True)
class Candidate:
    """
    Normalized presentation handed to the verification engine.

    authenticated is False when the optical string could not be opened;
    payload is then None.
    """

    source: CaptureSource
    payload: ClearancePayload | None
    authenticated: bool


@dataclass(frozen=True)
class Verdict:
    """Single result envelope for every gate outcome (preview or commit)."""

    decision: Decision
    reason: ReasonCode | str | None = None
    student_id: str | None = None
    profile: StudentProfile | None = None
    token_id: str | None = None
    consumed_at: datetime | None = None
    record_id: str | None = None

    @property
    def admitted(self) -> bool:
        return self.decision is Decision.ADMIT

    @property
    def message(self) -> str:
        if self.decision is Decision.ADMIT:
            return "Student cleared for entry" if self.record_id is None else "Entry approved"
        # Reasons arrive as enum members or plain strings.
        reason = self.reason.value if isinstance(self.reason, Enum) else self.reason
        return REASON_MESSAGES.get(reason, "Entry denied")

    @classmethod
    def admit(cls, student: Student, **extra) -> "Verdict":
        return cls(
            decision=Decision.ADMIT,
            student_id=student.id,
            profile=student.profile(),
            token_id=student.clearance_token,
            **extra,
        )

    @classmethod
    def deny(cls, reason: ReasonCode | str, **extra) -> "Verdict":
        return cls(decision=Decision.DENY, reason=reason, **extra)


@dataclass(frozen=True)
class DecisionMetadata:
    """Operator-supplied detail accompanying a decision."""

    exam_hall: str | None = None
    reason: str | None = None
    notes: str | None = None
    token_id: str | None = None
    consumed_at: datetime | None = None


@dataclass(frozen=True)
class VerificationRecord:
    """Immutable, append-only audit row; one per presentation attempt."""

    id: str
    examiner_id: str
    student_id: str | None
    decision: Decision
    reason: str | None
    exam_hall: str | None
    notes: str | None
    token_id: str | None
    consumed_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class AuthContext:
    """Authenticated actor supplied for every call into the recorder."""

    user_id: str
    role: Role
    student_id: str | None = None


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of a single provider verification call."""

    success: bool
    raw_response: dict


@dataclass(frozen=True)
class IssuedPass:
    """Issuance envelope: payload, sealed string and rendered barcode."""

    payload: ClearancePayload
    sealed: str
    qr_png_base64: str


@dataclass(frozen=True)
class ExaminerStats:
    total_scans: int
    approved: int
    denied: int


@dataclass(frozen=True)
class AdminOverview:
    total_students: int
    registered: int
    paid: int
    admitted: int
    recent_activity: list[VerificationRecord]
