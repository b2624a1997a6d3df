"""Repository adapters - Database implementations."""

from .postgres import (
    PostgresAccountRepository,
    PostgresPaymentRepository,
    PostgresStudentRepository,
    PostgresVerificationRepository,
    run_migrations,
)

__all__ = [
    "PostgresAccountRepository",
    "PostgresPaymentRepository",
    "PostgresStudentRepository",
    "PostgresVerificationRepository",
    "run_migrations",
]
