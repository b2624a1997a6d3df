"""
Dashboard read side.

Counters and history are derived from the audit trail and the student
table on every call; any client-side counters are reconciled from here.
"""

from dataclasses import dataclass

from .access import ensure_admin, ensure_gate_role
from .models import AdminOverview, AuthContext, ExaminerStats, VerificationRecord
from .ports import StudentRepository, VerificationRepository

HISTORY_LIMIT = 20
RECENT_ACTIVITY_LIMIT = 10


@dataclass
class DashboardQueries:
    verifications: VerificationRepository
    students: StudentRepository
    history_limit: int = HISTORY_LIMIT

    def examiner_stats(self, actor: AuthContext) -> ExaminerStats:
        ensure_gate_role(actor)
        return self.verifications.count_by_examiner(actor.user_id)

    def history(self, actor: AuthContext) -> list[VerificationRecord]:
        """Recent records committed by the calling examiner."""
        ensure_gate_role(actor)
        return self.verifications.query_recent(self.history_limit, examiner_id=actor.user_id)

    def admin_overview(self, actor: AuthContext) -> AdminOverview:
        ensure_admin(actor)
        total, registered, paid, admitted = self.students.count_overview()
        return AdminOverview(
            total_students=total,
            registered=registered,
            paid=paid,
            admitted=admitted,
            recent_activity=self.verifications.query_recent(RECENT_ACTIVITY_LIMIT),
        )
