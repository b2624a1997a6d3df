"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Every gate endpoint answers with the same VerdictResponse envelope; pass
issuance answers with PassResponse.
"""

from dataclasses import asdict
from datetime import datetime

from pydantic import BaseModel, Field

from src.domain.models import (
    AdminOverview,
    ExaminerStats,
    IssuedPass,
    StudentProfile,
    Verdict,
    VerificationRecord,
)


class ScanRequest(BaseModel):
    """Request model for an optical scan."""

    qr_data: str = Field(..., min_length=1, description="Decoded QR string")


class LookupRequest(BaseModel):
    """Request model for manual matric number entry."""

    matric_number: str = Field(..., min_length=1, max_length=64, description="Matriculation number")


class AdmitRequest(BaseModel):
    """Request model for committing an Admit after a preview."""

    student_id: str = Field(..., min_length=1)
    token_id: str = Field(..., min_length=1, description="token_id from the Admit preview")
    exam_hall: str = Field(..., min_length=1, description="Hall the student is admitted to")
    notes: str | None = None


class DenyRequest(BaseModel):
    """Request model for committing an examiner Deny."""

    student_id: str | None = None
    reason: str = Field(
        ...,
        min_length=1,
        description="photo_mismatch, expired_signature, wrong_venue, other, or a gate reason code",
    )
    exam_hall: str | None = None
    notes: str | None = None


class PaymentConfirmRequest(BaseModel):
    """Request model for payment confirmation."""

    student_id: str = Field(..., min_length=1)
    reference: str = Field(..., min_length=1, description="Provider payment reference (RRR)")


class PaymentConfirmResponse(BaseModel):
    verified: bool
    message: str


class ProfileModel(BaseModel):
    id: str
    name: str
    matric_number: str
    department: str
    faculty: str
    level: str
    photo_url: str

    @classmethod
    def from_profile(cls, profile: StudentProfile) -> "ProfileModel":
        return cls(**asdict(profile))


class VerdictResponse(BaseModel):
    """Result envelope for scan, lookup, admit and deny."""

    decision: str
    reason: str | None = None
    message: str
    student_id: str | None = None
    profile: ProfileModel | None = None
    token_id: str | None = None
    consumed_at: datetime | None = None
    record_id: str | None = None

    @classmethod
    def from_verdict(cls, verdict: Verdict) -> "VerdictResponse":
        reason = getattr(verdict.reason, "value", verdict.reason)
        return cls(
            decision=verdict.decision.value,
            reason=reason,
            message=verdict.message,
            student_id=verdict.student_id,
            profile=ProfileModel.from_profile(verdict.profile) if verdict.profile else None,
            token_id=verdict.token_id if verdict.admitted else None,
            consumed_at=verdict.consumed_at,
            record_id=verdict.record_id,
        )


class PassResponse(BaseModel):
    """Issuance envelope: sealed pass string plus rendered QR image."""

    student_id: str
    matric_number: str
    name: str
    issued_at: datetime
    qr_data: str
    qr_image: str = Field(..., description="PNG data URL")

    @classmethod
    def from_pass(cls, issued: IssuedPass) -> "PassResponse":
        payload = issued.payload
        return cls(
            student_id=payload.student_id,
            matric_number=payload.matric_number,
            name=payload.name,
            issued_at=payload.issued_at,
            qr_data=issued.sealed,
            qr_image=f"data:image/png;base64,{issued.qr_png_base64}",
        )


class RecordModel(BaseModel):
    id: str
    examiner_id: str
    student_id: str | None
    decision: str
    reason: str | None
    exam_hall: str | None
    notes: str | None
    consumed_at: datetime | None
    created_at: datetime

    @classmethod
    def from_record(cls, record: VerificationRecord) -> "RecordModel":
        return cls(
            id=record.id,
            examiner_id=record.examiner_id,
            student_id=record.student_id,
            decision=record.decision.value,
            reason=record.reason,
            exam_hall=record.exam_hall,
            notes=record.notes,
            consumed_at=record.consumed_at,
            created_at=record.created_at,
        )


class ExaminerStatsResponse(BaseModel):
    total_scans: int
    approved: int
    denied: int

    @classmethod
    def from_stats(cls, stats: ExaminerStats) -> "ExaminerStatsResponse":
        return cls(total_scans=stats.total_scans, approved=stats.approved, denied=stats.denied)


class AdminOverviewResponse(BaseModel):
    total_students: int
    registered: int
    paid: int
    admitted: int
    recent_activity: list[RecordModel]

    @classmethod
    def from_overview(cls, overview: AdminOverview) -> "AdminOverviewResponse":
        return cls(
            total_students=overview.total_students,
            registered=overview.registered,
            paid=overview.paid,
            admitted=overview.admitted,
            recent_activity=[RecordModel.from_record(r) for r in overview.recent_activity],
        )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    code: str | None = None
