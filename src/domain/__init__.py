"""
Domain layer - Pure business logic with zero framework imports.

This package contains the clearance-token lifecycle: issuance, gate
presentation, the verification rule chain, decision commits and
dashboard fan-out. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .audit import AuditRecorder
from .broadcast import EventBroadcaster
from .clearance import ClearanceIssuer
from .dashboard import DashboardQueries
from .exceptions import (
    AuthorizationError,
    ClearanceError,
    ClearanceIncompleteError,
    NotFoundError,
    SignatureError,
    StateConflictError,
    UpstreamError,
    ValidationFailed,
)
from .gate import ClearanceGate
from .models import Decision, ReasonCode, Role, Verdict
from .payment import PaymentService
from .presentation import OpticalScanner, PresentationReader
from .verification import VerificationEngine

__all__ = [
    "AuditRecorder",
    "AuthorizationError",
    "ClearanceError",
    "ClearanceGate",
    "ClearanceIncompleteError",
    "ClearanceIssuer",
    "DashboardQueries",
    "Decision",
    "EventBroadcaster",
    "NotFoundError",
    "OpticalScanner",
    "PaymentService",
    "PresentationReader",
    "ReasonCode",
    "Role",
    "SignatureError",
    "StateConflictError",
    "UpstreamError",
    "ValidationFailed",
    "Verdict",
    "VerificationEngine",
]
