"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition, forgery and
timing tests against a real database.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool

from tests.db import SEED_TOKEN, insert_student, truncate_all

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Start each test with a single cleared student holding a live token."""
    truncate_all(pool)
    insert_student(pool, clearance_token=SEED_TOKEN)
    yield
