"""
Adversarial tests for pass forgery and tampering.

An attacker who can read a pass (it is printed on paper) must not be
able to alter it, mint one, or replay a superseded one. Every attempt
ends in a recorded Deny and never consumes a token.
"""

import base64
import json

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.crypto.aesgcm import AesGcmTokenCodec
from src.adapters.repository.postgres import PostgresStudentRepository, PostgresVerificationRepository
from src.domain.audit import AuditRecorder
from src.domain.broadcast import EventBroadcaster
from src.domain.clearance import ClearanceIssuer
from src.domain.gate import ClearanceGate
from src.domain.models import Decision, ReasonCode
from src.domain.presentation import PresentationReader
from src.domain.verification import VerificationEngine
from tests.db import SEED_TOKEN
from tests.fakes import EXAMINER, RecordingTransport, StubRenderer, make_payload, make_student

pytestmark = pytest.mark.adversarial

SECRET = "adversarial-secret"


@pytest.fixture
def gate(pool: ConnectionPool) -> ClearanceGate:
    students = PostgresStudentRepository(pool)
    codec = AesGcmTokenCodec(SECRET)
    return ClearanceGate(
        reader=PresentationReader(codec, students, "exampass"),
        engine=VerificationEngine(students, "exampass"),
        recorder=AuditRecorder(
            PostgresVerificationRepository(pool), students, EventBroadcaster(RecordingTransport())
        ),
        students=students,
    )


def _consumed(pool: ConnectionPool) -> bool:
    with pool.connection() as conn:
        return conn.execute("SELECT token_consumed FROM students WHERE id = 'stu-1'").fetchone()[0]


class TestForgery:
    def test_plain_json_pass_is_rejected(self, pool, gate) -> None:
        """Attacker encodes the payload they saw without the key."""
        payload = make_payload(make_student(clearance_token=SEED_TOKEN))
        forged = base64.urlsafe_b64encode(json.dumps(payload.to_dict()).encode()).rstrip(b"=").decode()

        verdict = gate.scan(forged, EXAMINER)

        assert verdict.reason is ReasonCode.INVALID_SIGNATURE
        assert _consumed(pool) is False

    def test_pass_sealed_with_another_key_is_rejected(self, pool, gate) -> None:
        payload = make_payload(make_student(clearance_token=SEED_TOKEN))
        forged = AesGcmTokenCodec("guessed-secret").encode(payload)

        assert gate.scan(forged, EXAMINER).reason is ReasonCode.INVALID_SIGNATURE

    def test_tampered_pass_is_rejected(self, pool, gate) -> None:
        sealed = AesGcmTokenCodec(SECRET).encode(make_payload(make_student(clearance_token=SEED_TOKEN)))
        raw = bytearray(base64.urlsafe_b64decode(sealed + "=" * (-len(sealed) % 4)))
        raw[20] ^= 0x04
        tampered = base64.urlsafe_b64encode(bytes(raw)).rstrip(b"=").decode()

        assert gate.scan(tampered, EXAMINER).reason is ReasonCode.INVALID_SIGNATURE

    def test_superseded_pass_is_rejected(self, pool, gate) -> None:
        """A pass kept after entry cannot be replayed once a new one exists."""
        issuer = ClearanceIssuer(PostgresStudentRepository(pool), AesGcmTokenCodec(SECRET), StubRenderer(), "exampass")
        old = issuer.issue_pass("stu-1").sealed
        preview = gate.scan(old, EXAMINER)
        gate.admit("stu-1", preview.token_id, "Hall A", EXAMINER)
        issuer.issue_pass("stu-1")

        verdict = gate.scan(old, EXAMINER)

        assert verdict.reason is ReasonCode.TOKEN_MISMATCH
        assert _consumed(pool) is False

    def test_admit_with_guessed_token_is_denied(self, pool, gate) -> None:
        verdict = gate.admit("stu-1", "00" * 32, "Hall A", EXAMINER)

        assert verdict.decision is Decision.DENY
        assert verdict.reason is ReasonCode.TOKEN_MISMATCH
        assert _consumed(pool) is False

    def test_every_forgery_attempt_is_audited(self, pool, gate) -> None:
        for attempt in ("0", "x", "eyJhIjoxfQ"):
            gate.scan(attempt, EXAMINER)

        with pool.connection() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM verifications WHERE reason = 'invalid_signature'"
            ).fetchone()[0]
        assert count == 3
