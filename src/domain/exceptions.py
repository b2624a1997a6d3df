"""
Domain exceptions - Semantic error types for clearance.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Expected gate outcomes (any named reason code) are returned as Verdicts,
not raised. These exceptions cover malformed requests, issuance refusals,
authorization failures and upstream faults.
"""


class ClearanceError(Exception):
    """Base class for clearance domain errors."""

    code = "clearance_error"


class ValidationFailed(ClearanceError):
    """Decision or candidate is malformed (missing hall, unknown reason)."""

    code = "validation_failed"


class SignatureError(ClearanceError):
    """Sealed pass could not be opened or parsed."""

    code = "invalid_signature"


class NotFoundError(ClearanceError):
    """Referenced student or record does not exist."""

    code = "student_not_found"


class StateConflictError(ClearanceError):
    """Requested transition conflicts with current state."""

    code = "state_conflict"


class ClearanceIncompleteError(StateConflictError):
    """Student is not both registered and payment-verified."""

    code = "clearance_incomplete"


class UpstreamError(ClearanceError):
    """Payment provider timed out or is unreachable."""

    code = "upstream_unavailable"


class AuthorizationError(ClearanceError):
    """Actor's role is not permitted to perform the operation."""

    code = "not_authorized"
