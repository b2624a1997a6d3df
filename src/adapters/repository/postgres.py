"""
PostgreSQL repository adapters - Implement the domain's repository protocols.

This module provides the PostgreSQL implementations of the domain's
persistence ports using psycopg3 with raw SQL.

Concurrency Design - Single Serialization Point:
-----------------------------------------------
Verification reads take no locks. The only contended write is token
consumption, done by commit_admission as one conditional UPDATE:

    UPDATE students SET token_consumed = TRUE ...
    WHERE id = %s AND clearance_token = %s AND token_consumed = FALSE

Under READ COMMITTED a concurrent second UPDATE blocks on the row lock,
then re-evaluates its WHERE clause against the committed row and matches
nothing. Exactly one terminal consumes a token; the Admit row is inserted
in the same transaction, so an Admit exists if and only if the token was
consumed. A partial unique index (one Admit per token_id) backs this up.

Verification rows are append-only; a trigger rejects UPDATE and DELETE.

Security Design - Timing Oracle Prevention:
------------------------------------------
PostgresAccountRepository.authenticate always runs bcrypt.checkpw, against
a pre-computed dummy hash when the username does not exist, so response
time does not reveal which usernames are registered.
"""

import logging
from pathlib import Path

import bcrypt
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.models import (
    AuthContext,
    Decision,
    ExaminerStats,
    Role,
    Student,
    VerificationRecord,
)

logger = logging.getLogger(__name__)

# Pre-computed bcrypt hash for timing oracle prevention.
# Used when a username doesn't exist to ensure constant-time password comparison.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()

_STUDENT_COLUMNS = """
    id, name, matric_number, department, faculty, level, photo_url,
    registration_complete, payment_verified,
    clearance_token, token_consumed, token_consumed_at
"""

_RECORD_COLUMNS = """
    id, examiner_id, student_id, decision, reason, exam_hall, notes,
    token_id, consumed_at, created_at
"""


def _row_to_student(row: tuple) -> Student:
    return Student(
        id=row[0],
        name=row[1],
        matric_number=row[2],
        department=row[3],
        faculty=row[4],
        level=row[5],
        photo_url=row[6],
        registration_complete=row[7],
        payment_verified=row[8],
        clearance_token=row[9],
        token_consumed=row[10],
        token_consumed_at=row[11],
    )


def _row_to_record(row: tuple) -> VerificationRecord:
    return VerificationRecord(
        id=row[0],
        examiner_id=row[1],
        student_id=row[2],
        decision=Decision(row[3]),
        reason=row[4],
        exam_hall=row[5],
        notes=row[6],
        token_id=row[7],
        consumed_at=row[8],
        created_at=row[9],
    )


def _record_params(record: VerificationRecord) -> tuple:
    return (
        record.id,
        record.examiner_id,
        record.student_id,
        record.decision.value,
        record.reason,
        record.exam_hall,
        record.notes,
        record.token_id,
        record.consumed_at,
        record.created_at,
    )


_INSERT_RECORD_SQL = f"""
    INSERT INTO verifications ({_RECORD_COLUMNS})
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
"""


class PostgresStudentRepository:
    """
    Implements StudentRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def find_by_id(self, student_id: str) -> Student | None:
        sql = f"SELECT {_STUDENT_COLUMNS} FROM students WHERE id = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (student_id,))
            row = cursor.fetchone()
        return _row_to_student(row) if row is not None else None

    def find_by_matric(self, matric_number: str) -> Student | None:
        # Served by the unique index on LOWER(matric_number)
        sql = f"SELECT {_STUDENT_COLUMNS} FROM students WHERE LOWER(matric_number) = LOWER(%s)"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (matric_number,))
            row = cursor.fetchone()
        return _row_to_student(row) if row is not None else None

    def set_token(self, student_id: str, token: str) -> bool:
        """
        Store a new token only while no live token exists.

        The WHERE clause makes concurrent issuances for one student
        serialize on the row: the loser matches 0 rows and reuses the
        winner's token.
        """
        sql = """
            UPDATE students
            SET clearance_token = %s, token_consumed = FALSE, token_consumed_at = NULL
            WHERE id = %s AND (clearance_token IS NULL OR token_consumed = TRUE)
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (token, student_id))
            conn.commit()
            return cursor.rowcount == 1

    def set_payment_verified(self, student_id: str) -> bool:
        sql = "UPDATE students SET payment_verified = TRUE WHERE id = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (student_id,))
            conn.commit()
            return cursor.rowcount == 1

    def count_overview(self) -> tuple[int, int, int, int]:
        sql = """
            SELECT COUNT(*),
                   COUNT(*) FILTER (WHERE registration_complete),
                   COUNT(*) FILTER (WHERE payment_verified),
                   COUNT(*) FILTER (WHERE token_consumed)
            FROM students
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql)
            total, registered, paid, admitted = cursor.fetchone()
        return total, registered, paid, admitted


class PostgresVerificationRepository:
    """
    Implements VerificationRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def insert(self, record: VerificationRecord) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(_INSERT_RECORD_SQL, _record_params(record))
            conn.commit()

    def commit_admission(self, record: VerificationRecord) -> bool:
        """
        Consume the token and append the Admit row in one transaction.

        The consume is a compare-and-set on token_consumed; 0 matched rows
        means another commit won (or the token was rotated) and nothing
        is written. The record's consumed_at becomes token_consumed_at.

        Args:
            record: ADMIT record carrying student_id, token_id and consumed_at

        Returns:
            True if this call consumed the token
        """
        consume_sql = """
            UPDATE students
            SET token_consumed = TRUE, token_consumed_at = %s
            WHERE id = %s AND clearance_token = %s AND token_consumed = FALSE
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                consume_sql, (record.consumed_at or record.created_at, record.student_id, record.token_id)
            )
            if cursor.rowcount != 1:
                conn.rollback()
                return False

            cursor.execute(_INSERT_RECORD_SQL, _record_params(record))
            conn.commit()
            return True

    def query_recent(self, limit: int, examiner_id: str | None = None) -> list[VerificationRecord]:
        if examiner_id is None:
            sql = f"SELECT {_RECORD_COLUMNS} FROM verifications ORDER BY created_at DESC LIMIT %s"
            params: tuple = (limit,)
        else:
            sql = f"""
                SELECT {_RECORD_COLUMNS} FROM verifications
                WHERE examiner_id = %s
                ORDER BY created_at DESC
                LIMIT %s
            """
            params = (examiner_id, limit)

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            rows = cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    def count_by_examiner(self, examiner_id: str) -> ExaminerStats:
        sql = """
            SELECT COUNT(*),
                   COUNT(*) FILTER (WHERE decision = 'admit'),
                   COUNT(*) FILTER (WHERE decision = 'deny')
            FROM verifications
            WHERE examiner_id = %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (examiner_id,))
            total, approved, denied = cursor.fetchone()
        return ExaminerStats(total_scans=total, approved=approved, denied=denied)


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3 and bcrypt.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def authenticate(self, username: str, password: str) -> AuthContext | None:
        """
        Resolve credentials to an actor.

        bcrypt.checkpw runs on every path, against a dummy hash when the
        username is unknown, so unknown users and wrong passwords take
        the same time and both return None.
        """
        sql = "SELECT id, password_hash, role, student_id FROM accounts WHERE username = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (username,))
            row = cursor.fetchone()

        stored_hash = row[1] if row is not None else _DUMMY_BCRYPT_HASH
        password_valid = bcrypt.checkpw(password.encode(), stored_hash.encode())

        if row is None or not password_valid:
            return None
        return AuthContext(user_id=row[0], role=Role(row[2]), student_id=row[3])


class PostgresPaymentRepository:
    """Implements PaymentRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def record_attempt(self, reference: str, student_id: str, verified: bool, provider_response: dict) -> None:
        sql = """
            INSERT INTO payments (reference, student_id, verified, provider_response)
            VALUES (%s, %s, %s, %s)
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (reference, student_id, verified, Jsonb(provider_response)))
            conn.commit()


def hash_password(password: str, cost: int = 10) -> str:
    """bcrypt hash for account seeding."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=cost)).decode()


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            with pool.connection() as conn:
                conn.execute(sql_file.read_text())
            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
