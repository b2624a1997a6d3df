"""Role checks shared by the domain services."""

from .exceptions import AuthorizationError
from .models import AuthContext, Role

GATE_ROLES = frozenset({Role.EXAMINER, Role.ADMIN})


def ensure_gate_role(actor: AuthContext) -> None:
    """Only examiners and admins may operate the gate or commit decisions."""
    if actor.role not in GATE_ROLES:
        raise AuthorizationError(actor.user_id)


def ensure_admin(actor: AuthContext) -> None:
    if actor.role is not Role.ADMIN:
        raise AuthorizationError(actor.user_id)


def ensure_owner_or_admin(actor: AuthContext, student_id: str) -> None:
    """A student may act on their own record; admins on any."""
    if actor.role is Role.ADMIN:
        return
    if actor.role is Role.STUDENT and actor.student_id == student_id:
        return
    raise AuthorizationError(actor.user_id)
