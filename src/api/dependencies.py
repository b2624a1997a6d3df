"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.

Long-lived collaborators (connection pool, broadcaster, payment client)
are created in the app lifespan and read from app.state; per-request
services are assembled here.
"""

import base64
import binascii
from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from psycopg_pool import ConnectionPool

from src.adapters.crypto.aesgcm import AesGcmTokenCodec
from src.adapters.payment.http import HttpPaymentProvider
from src.adapters.render.qrcode_png import QrCodePassRenderer
from src.adapters.repository.postgres import (
    PostgresAccountRepository,
    PostgresPaymentRepository,
    PostgresStudentRepository,
    PostgresVerificationRepository,
)
from src.config.settings import get_settings
from src.domain.audit import AuditRecorder
from src.domain.broadcast import EventBroadcaster
from src.domain.clearance import ClearanceIssuer
from src.domain.dashboard import DashboardQueries
from src.domain.gate import ClearanceGate
from src.domain.models import AuthContext
from src.domain.payment import PaymentService
from src.domain.presentation import PresentationReader
from src.domain.verification import VerificationEngine

# Module-level singleton - QrCodePassRenderer is stateless
_renderer = QrCodePassRenderer()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_student_repository(request: Request) -> PostgresStudentRepository:
    return PostgresStudentRepository(get_pool(request))


def get_verification_repository(request: Request) -> PostgresVerificationRepository:
    return PostgresVerificationRepository(get_pool(request))


def get_account_repository(request: Request) -> PostgresAccountRepository:
    return PostgresAccountRepository(get_pool(request))


@lru_cache
def get_token_codec() -> AesGcmTokenCodec:
    """Codec keyed from settings; the key is derived once."""
    return AesGcmTokenCodec(get_settings().clearance_secret)


def get_pass_renderer() -> QrCodePassRenderer:
    """Get QR pass renderer (singleton)."""
    return _renderer


def get_broadcaster(request: Request) -> EventBroadcaster:
    return request.app.state.broadcaster


def get_clearance_issuer(request: Request) -> ClearanceIssuer:
    return ClearanceIssuer(
        students=get_student_repository(request),
        codec=get_token_codec(),
        renderer=get_pass_renderer(),
        issuer=get_settings().clearance_issuer,
    )


def get_clearance_gate(request: Request) -> ClearanceGate:
    """
    Create the gate with injected dependencies.

    Wires reader, engine and recorder over the same repositories.
    """
    settings = get_settings()
    students = get_student_repository(request)
    recorder = AuditRecorder(
        verifications=get_verification_repository(request),
        students=students,
        broadcaster=get_broadcaster(request),
    )
    return ClearanceGate(
        reader=PresentationReader(codec=get_token_codec(), students=students, issuer=settings.clearance_issuer),
        engine=VerificationEngine(students=students, issuer=settings.clearance_issuer),
        recorder=recorder,
        students=students,
    )


def get_payment_service(request: Request) -> PaymentService:
    settings = get_settings()
    return PaymentService(
        provider=HttpPaymentProvider(request.app.state.payment_client),
        payments=PostgresPaymentRepository(get_pool(request)),
        students=get_student_repository(request),
        test_mode=settings.payment_test_mode,
        test_reference=settings.payment_test_reference,
    )


def get_dashboard_queries(request: Request) -> DashboardQueries:
    return DashboardQueries(
        verifications=get_verification_repository(request),
        students=get_student_repository(request),
        history_limit=get_settings().history_limit,
    )


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_actor(
    credentials: HTTPBasicCredentials = Depends(http_basic),
    accounts: PostgresAccountRepository = Depends(get_account_repository),
) -> AuthContext:
    """
    Resolve HTTP BASIC AUTH credentials to the authenticated actor.

    FastAPI's HTTPBasic automatically returns 401 for a missing or
    malformed Authorization header. Usernames are stripped and lowercased.
    """
    actor = accounts.authenticate(credentials.username.strip().lower(), credentials.password)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return actor


def parse_basic_authorization(header: str | None) -> tuple[str, str] | None:
    """
    Parse a raw Authorization header for WebSocket handshakes.

    Returns:
        (normalized_username, password), or None if absent or malformed
    """
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, separator, password = decoded.partition(":")
    if not separator:
        return None
    return username.strip().lower(), password
