"""
API v1 routes.

Defines REST endpoints for pass issuance, payment confirmation, the gate
and dashboards, plus the dashboard WebSocket feed.

Endpoints that touch the database are plain functions so FastAPI runs
them in its threadpool; concurrent terminals are serialized only by the
conditional consume in the database.
"""

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool

from src.api.dependencies import (
    get_account_repository,
    get_actor,
    get_clearance_gate,
    get_clearance_issuer,
    get_dashboard_queries,
    get_payment_service,
    parse_basic_authorization,
)
from src.api.models import (
    AdminOverviewResponse,
    AdmitRequest,
    DenyRequest,
    ErrorResponse,
    ExaminerStatsResponse,
    LookupRequest,
    PassResponse,
    PaymentConfirmRequest,
    PaymentConfirmResponse,
    RecordModel,
    ScanRequest,
    VerdictResponse,
)
from src.domain.access import ensure_admin, ensure_gate_role, ensure_owner_or_admin
from src.domain.clearance import ClearanceIssuer
from src.domain.dashboard import DashboardQueries
from src.domain.exceptions import AuthorizationError
from src.domain.gate import ClearanceGate
from src.domain.models import AuthContext, Group
from src.domain.payment import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["v1"])

_AUTH_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
    403: {"model": ErrorResponse, "description": "Role not permitted"},
    503: {"model": ErrorResponse, "description": "Service unavailable"},
}


@router.post(
    "/students/{student_id}/pass",
    response_model=PassResponse,
    responses={
        **_AUTH_RESPONSES,
        404: {"model": ErrorResponse, "description": "Student not found"},
        409: {"model": ErrorResponse, "description": "Student is not cleared for a pass"},
    },
    summary="Issue or reuse a clearance pass",
    description="Returns the student's sealed pass and its QR image. "
    "Repeated calls before the pass is used return the same token.",
)
def issue_pass(
    student_id: str,
    actor: AuthContext = Depends(get_actor),
    issuer: ClearanceIssuer = Depends(get_clearance_issuer),
) -> PassResponse:
    ensure_owner_or_admin(actor, student_id)
    return PassResponse.from_pass(issuer.issue_pass(student_id))


@router.post(
    "/payments/confirm",
    response_model=PaymentConfirmResponse,
    responses={**_AUTH_RESPONSES, 404: {"model": ErrorResponse, "description": "Student not found"}},
    summary="Confirm an examination fee payment",
)
def confirm_payment(
    request_data: PaymentConfirmRequest,
    actor: AuthContext = Depends(get_actor),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentConfirmResponse:
    outcome = service.confirm(request_data.student_id, request_data.reference, actor)
    if outcome.success:
        return PaymentConfirmResponse(verified=True, message="Payment verified")
    return PaymentConfirmResponse(verified=False, message="Payment verification failed")


@router.post(
    "/gate/scan",
    response_model=VerdictResponse,
    responses=_AUTH_RESPONSES,
    summary="Verify a scanned pass",
    description="Runs the clearance rule chain on a scanned QR string. "
    "Admit is a preview; commit it with /gate/admit.",
)
def scan(
    request_data: ScanRequest,
    actor: AuthContext = Depends(get_actor),
    gate: ClearanceGate = Depends(get_clearance_gate),
) -> VerdictResponse:
    return VerdictResponse.from_verdict(gate.scan(request_data.qr_data, actor))


@router.post(
    "/gate/lookup",
    response_model=VerdictResponse,
    responses=_AUTH_RESPONSES,
    summary="Verify a student by matric number",
)
def lookup(
    request_data: LookupRequest,
    actor: AuthContext = Depends(get_actor),
    gate: ClearanceGate = Depends(get_clearance_gate),
) -> VerdictResponse:
    return VerdictResponse.from_verdict(gate.lookup(request_data.matric_number, actor))


@router.post(
    "/gate/admit",
    response_model=VerdictResponse,
    responses={**_AUTH_RESPONSES, 422: {"model": ErrorResponse, "description": "Validation error"}},
    summary="Commit an Admit",
    description="Consumes the pass. If another terminal already admitted it, "
    "the answer is a Deny with reason already_used.",
)
def admit(
    request_data: AdmitRequest,
    actor: AuthContext = Depends(get_actor),
    gate: ClearanceGate = Depends(get_clearance_gate),
) -> VerdictResponse:
    verdict = gate.admit(
        request_data.student_id,
        request_data.token_id,
        request_data.exam_hall,
        actor,
        notes=request_data.notes,
    )
    return VerdictResponse.from_verdict(verdict)


@router.post(
    "/gate/deny",
    response_model=VerdictResponse,
    responses={**_AUTH_RESPONSES, 422: {"model": ErrorResponse, "description": "Validation error"}},
    summary="Commit a Deny",
)
def deny(
    request_data: DenyRequest,
    actor: AuthContext = Depends(get_actor),
    gate: ClearanceGate = Depends(get_clearance_gate),
) -> VerdictResponse:
    verdict = gate.deny(
        request_data.student_id,
        request_data.reason,
        actor,
        exam_hall=request_data.exam_hall,
        notes=request_data.notes,
    )
    return VerdictResponse.from_verdict(verdict)


@router.get(
    "/examiner/stats",
    response_model=ExaminerStatsResponse,
    responses=_AUTH_RESPONSES,
    summary="Decision totals for the calling examiner",
)
def examiner_stats(
    actor: AuthContext = Depends(get_actor),
    queries: DashboardQueries = Depends(get_dashboard_queries),
) -> ExaminerStatsResponse:
    return ExaminerStatsResponse.from_stats(queries.examiner_stats(actor))


@router.get(
    "/examiner/history",
    response_model=list[RecordModel],
    responses=_AUTH_RESPONSES,
    summary="Recent decisions by the calling examiner",
)
def examiner_history(
    actor: AuthContext = Depends(get_actor),
    queries: DashboardQueries = Depends(get_dashboard_queries),
) -> list[RecordModel]:
    return [RecordModel.from_record(record) for record in queries.history(actor)]


@router.get(
    "/admin/overview",
    response_model=AdminOverviewResponse,
    responses=_AUTH_RESPONSES,
    summary="Clearance overview for administrators",
)
def admin_overview(
    actor: AuthContext = Depends(get_actor),
    queries: DashboardQueries = Depends(get_dashboard_queries),
) -> AdminOverviewResponse:
    return AdminOverviewResponse.from_overview(queries.admin_overview(actor))


@router.websocket("/ws/dashboard")
async def dashboard_feed(websocket: WebSocket, group: str = Group.EXAMINERS.value) -> None:
    """
    Live decision feed for examiner and admin dashboards.

    Authenticates with HTTP BASIC AUTH on the handshake. Events committed
    before the connection are not replayed; clients pull history first.
    """
    credentials = parse_basic_authorization(websocket.headers.get("authorization"))
    actor = None
    if credentials is not None:
        accounts = get_account_repository(websocket)
        actor = await run_in_threadpool(accounts.authenticate, *credentials)

    try:
        if actor is None:
            raise AuthorizationError("anonymous")
        if group == Group.ADMINS.value:
            ensure_admin(actor)
        else:
            ensure_gate_role(actor)
        Group(group)
    except (AuthorizationError, ValueError):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    broadcaster = websocket.app.state.broadcaster
    transport = websocket.app.state.broadcast_transport
    session_id = str(uuid.uuid4())
    transport.connect(session_id)
    broadcaster.subscribe(session_id, group)

    await websocket.accept()
    sender = asyncio.create_task(transport.pump(session_id, websocket))
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Dashboard session %s disconnected", session_id)
    finally:
        broadcaster.unsubscribe(session_id)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.warning("Dashboard sender for %s failed", session_id, exc_info=True)
