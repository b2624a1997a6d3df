"""
Unit tests for API v1 routes.

Tests endpoint responses with the domain services assembled over
in-memory ports and injected via dependency_overrides.
"""

from base64 import b64encode
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.crypto.aesgcm import AesGcmTokenCodec
from src.api.dependencies import (
    get_account_repository,
    get_actor,
    get_clearance_gate,
    get_clearance_issuer,
    get_dashboard_queries,
    get_payment_service,
    parse_basic_authorization,
)
from src.api.errors import register_exception_handlers
from src.api.v1.routes import router
from src.domain.audit import AuditRecorder
from src.domain.broadcast import EventBroadcaster
from src.domain.clearance import ClearanceIssuer
from src.domain.dashboard import DashboardQueries
from src.domain.exceptions import UpstreamError
from src.domain.gate import ClearanceGate
from src.domain.models import AuthContext
from src.domain.payment import PaymentService
from src.domain.presentation import PresentationReader
from src.domain.verification import VerificationEngine
from tests.fakes import (
    ADMIN,
    EXAMINER,
    ISSUER,
    InMemoryPaymentRepository,
    InMemoryStudentRepository,
    InMemoryVerificationRepository,
    RecordingTransport,
    StubPaymentProvider,
    StubRenderer,
    make_student,
    student_actor,
)


def basic_auth_header(username: str, password: str) -> dict:
    """Create HTTP BASIC AUTH header for testing."""
    encoded = b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {encoded}"}


class ApiHarness:
    def __init__(self) -> None:
        self.codec = AesGcmTokenCodec("api-test-secret")
        self.students = InMemoryStudentRepository(
            make_student(),
            make_student("stu-2", matric_number="CSC/2021/002", payment_verified=False),
        )
        self.verifications = InMemoryVerificationRepository(self.students)
        self.transport = RecordingTransport()
        self.provider = StubPaymentProvider()
        self.actor: AuthContext = EXAMINER

        self.app = FastAPI()
        register_exception_handlers(self.app)
        self.app.include_router(router, prefix="/v1")
        self.app.state.pool = MagicMock()

        overrides = self.app.dependency_overrides
        overrides[get_actor] = lambda: self.actor
        overrides[get_clearance_issuer] = self.issuer
        overrides[get_clearance_gate] = self.gate
        overrides[get_payment_service] = self.payments
        overrides[get_dashboard_queries] = lambda: DashboardQueries(self.verifications, self.students)

        self.client = TestClient(self.app, raise_server_exceptions=False)

    def issuer(self) -> ClearanceIssuer:
        return ClearanceIssuer(self.students, self.codec, StubRenderer(), ISSUER)

    def gate(self) -> ClearanceGate:
        return ClearanceGate(
            reader=PresentationReader(self.codec, self.students, ISSUER),
            engine=VerificationEngine(self.students, ISSUER),
            recorder=AuditRecorder(self.verifications, self.students, EventBroadcaster(self.transport)),
            students=self.students,
        )

    def payments(self) -> PaymentService:
        return PaymentService(self.provider, InMemoryPaymentRepository(), self.students)

    def issue(self, student_id: str = "stu-1") -> dict:
        self.actor = ADMIN
        response = self.client.post(f"/v1/students/{student_id}/pass")
        self.actor = EXAMINER
        return response.json()


@pytest.fixture
def api() -> ApiHarness:
    return ApiHarness()


class TestIssuePass:
    def test_student_gets_own_pass(self, api) -> None:
        api.actor = student_actor("stu-1")

        response = api.client.post("/v1/students/stu-1/pass")

        assert response.status_code == 200
        body = response.json()
        assert body["student_id"] == "stu-1"
        assert body["qr_image"].startswith("data:image/png;base64,")
        assert api.codec.decode(body["qr_data"]).student_id == "stu-1"

    def test_reissue_returns_same_token(self, api) -> None:
        first = api.issue()
        second = api.issue()

        assert api.codec.decode(first["qr_data"]).token_id == api.codec.decode(second["qr_data"]).token_id

    def test_other_students_pass_is_forbidden(self, api) -> None:
        api.actor = student_actor("stu-2")

        response = api.client.post("/v1/students/stu-1/pass")

        assert response.status_code == 403
        assert response.json()["code"] == "not_authorized"

    def test_uncleared_student_is_409(self, api) -> None:
        api.actor = ADMIN

        response = api.client.post("/v1/students/stu-2/pass")

        assert response.status_code == 409
        assert response.json()["code"] == "clearance_incomplete"

    def test_unknown_student_is_404(self, api) -> None:
        api.actor = ADMIN

        response = api.client.post("/v1/students/ghost/pass")

        assert response.status_code == 404


class TestGate:
    def test_scan_then_admit(self, api) -> None:
        sealed = api.issue()["qr_data"]

        preview = api.client.post("/v1/gate/scan", json={"qr_data": sealed}).json()
        assert preview["decision"] == "admit"
        assert preview["message"] == "Student cleared for entry"
        assert preview["profile"]["matric_number"] == "CSC/2021/001"

        committed = api.client.post(
            "/v1/gate/admit",
            json={"student_id": "stu-1", "token_id": preview["token_id"], "exam_hall": "Hall A"},
        ).json()
        assert committed["decision"] == "admit"
        assert committed["record_id"]

        again = api.client.post("/v1/gate/scan", json={"qr_data": sealed}).json()
        assert again["decision"] == "deny"
        assert again["reason"] == "already_used"
        assert again["consumed_at"] is not None
        assert again["token_id"] is None

    def test_forged_scan_is_denied_not_errored(self, api) -> None:
        response = api.client.post("/v1/gate/scan", json={"qr_data": "forged"})

        assert response.status_code == 200
        assert response.json()["reason"] == "invalid_signature"

    def test_lookup_unknown_matric(self, api) -> None:
        response = api.client.post("/v1/gate/lookup", json={"matric_number": "NOPE/1"})

        assert response.json()["reason"] == "identity_not_found"

    def test_admit_without_hall_is_422(self, api) -> None:
        response = api.client.post(
            "/v1/gate/admit", json={"student_id": "stu-1", "token_id": "x", "exam_hall": "  "}
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_failed"

    def test_deny_with_unknown_reason_is_422(self, api) -> None:
        response = api.client.post("/v1/gate/deny", json={"student_id": "stu-1", "reason": "vibes"})

        assert response.status_code == 422

    def test_examiner_deny(self, api) -> None:
        api.issue()

        response = api.client.post(
            "/v1/gate/deny", json={"student_id": "stu-1", "reason": "wrong_venue", "exam_hall": "Hall C"}
        )

        assert response.status_code == 200
        assert response.json()["reason"] == "wrong_venue"
        assert api.verifications.records[-1].exam_hall == "Hall C"

    def test_students_cannot_use_the_gate(self, api) -> None:
        api.actor = student_actor("stu-1")

        response = api.client.post("/v1/gate/scan", json={"qr_data": "anything"})

        assert response.status_code == 403

    def test_empty_scan_is_rejected_by_schema(self, api) -> None:
        response = api.client.post("/v1/gate/scan", json={"qr_data": ""})

        assert response.status_code == 422


class TestPayments:
    def test_confirm_payment(self, api) -> None:
        api.actor = student_actor("stu-2")

        response = api.client.post("/v1/payments/confirm", json={"student_id": "stu-2", "reference": "RRR-9"})

        assert response.json() == {"verified": True, "message": "Payment verified"}
        assert api.students.find_by_id("stu-2").payment_verified is True

    def test_provider_outage_is_503(self, api) -> None:
        api.actor = ADMIN
        api.provider.error = UpstreamError("payment provider timed out")

        response = api.client.post("/v1/payments/confirm", json={"student_id": "stu-2", "reference": "RRR-9"})

        assert response.status_code == 503
        assert response.json()["detail"] == "Service unavailable"


class TestDashboards:
    def test_examiner_stats_and_history(self, api) -> None:
        api.client.post("/v1/gate/scan", json={"qr_data": "junk"})
        api.client.post("/v1/gate/lookup", json={"matric_number": "missing"})

        stats = api.client.get("/v1/examiner/stats").json()
        history = api.client.get("/v1/examiner/history").json()

        assert stats == {"total_scans": 2, "approved": 0, "denied": 2}
        assert [r["reason"] for r in history] == ["identity_not_found", "invalid_signature"]

    def test_admin_overview(self, api) -> None:
        api.actor = ADMIN

        body = api.client.get("/v1/admin/overview").json()

        assert body["total_students"] == 2
        assert body["paid"] == 1
        assert body["admitted"] == 0
        assert body["recent_activity"] == []

    def test_examiner_cannot_see_admin_overview(self, api) -> None:
        assert api.client.get("/v1/admin/overview").status_code == 403


class TestAuthentication:
    def test_missing_credentials_is_401(self) -> None:
        app = FastAPI()
        app.include_router(router, prefix="/v1")
        app.state.pool = MagicMock()

        response = TestClient(app).get("/v1/examiner/stats")

        assert response.status_code == 401

    def test_wrong_credentials_is_401(self) -> None:
        accounts = MagicMock()
        accounts.authenticate.return_value = None
        app = FastAPI()
        app.include_router(router, prefix="/v1")
        app.state.pool = MagicMock()
        app.dependency_overrides[get_account_repository] = lambda: accounts

        response = TestClient(app).get("/v1/examiner/stats", headers=basic_auth_header("Examiner1 ", "nope"))

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Basic"
        accounts.authenticate.assert_called_once_with("examiner1", "nope")

    def test_unexpected_failure_is_503(self, api) -> None:
        def broken():
            raise RuntimeError("pool exhausted")

        api.app.dependency_overrides[get_dashboard_queries] = broken

        response = api.client.get("/v1/examiner/stats")

        assert response.status_code == 503
        assert response.json()["code"] == "service_unavailable"


class TestParseBasicAuthorization:
    def test_valid_header(self) -> None:
        header = basic_auth_header(" Admin ", "p:w")["Authorization"]

        assert parse_basic_authorization(header) == ("admin", "p:w")

    @pytest.mark.parametrize("header", [None, "", "Bearer abc", "Basic", "Basic !!!", "Basic bm9jb2xvbg=="])
    def test_malformed_headers(self, header) -> None:
        assert parse_basic_authorization(header) is None
