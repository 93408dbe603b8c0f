"""Test configuration and fixtures for the library circulation core.

1. Isolated test databases - each test gets its own SQLite file
2. Configuration overrides - test-specific circulation policy
3. A controllable clock - loans are created and returned on chosen dates
4. Factories for books and members registered through the catalog
"""

import itertools
import os
from collections.abc import Callable, Generator
from datetime import date, timedelta
from pathlib import Path

import pytest

from library_circulation.circulation import CatalogService, LoanLifecycleCoordinator
from library_circulation.config import CirculationConfig, reset_config
from library_circulation.database import DatabaseManager, reset_db_manager
from library_circulation.models import Book, Member

START_DATE = date(2024, 3, 1)


class FakeClock:
    """Stands in for ``date.today`` so tests decide what day it is."""

    def __init__(self, today: date = START_DATE):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int) -> date:
        self.today += timedelta(days=days)
        return self.today


# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_circulation.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    """Provide a SQLAlchemy database URL for testing."""
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """A database manager with the schema created, disposed after the test."""
    manager = DatabaseManager(test_database_url, lock_timeout=5.0)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def db_session(db_manager: DatabaseManager):
    """A raw session for arranging or inspecting rows directly."""
    with db_manager.session_scope() as session:
        yield session


# === Configuration Fixtures ===


@pytest.fixture
def test_config(test_database_url: str) -> Generator[CirculationConfig, None, None]:
    """Circulation policy used by the tests, isolated from the environment."""
    reset_config()
    reset_db_manager()

    config = CirculationConfig(
        server_name="test-library-circulation",
        database_url=test_database_url,
        default_loan_period_days=14,
        max_loan_period_days=60,
        daily_fine_rate=1.0,
        max_transaction_retries=5,
        retry_backoff_seconds=0.01,
        overdue_batch_size=100,
        debug=True,
        log_level="DEBUG",
    )

    yield config

    reset_config()
    reset_db_manager()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Provide an environment without LIBRARY_CIRCULATION_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("LIBRARY_CIRCULATION_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# === Service Fixtures ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def coordinator(
    db_manager: DatabaseManager, test_config: CirculationConfig, clock: FakeClock
) -> LoanLifecycleCoordinator:
    return LoanLifecycleCoordinator(db_manager, test_config, today=clock, sleep=lambda _: None)


@pytest.fixture
def catalog(db_manager: DatabaseManager) -> CatalogService:
    return CatalogService(db_manager)


@pytest.fixture
def make_book(catalog: CatalogService) -> Callable[..., Book]:
    """Register books with sensible defaults; override any field by keyword."""
    isbns = itertools.count(9780000000001)

    def _make_book(**overrides) -> Book:
        total = overrides.pop("total_copies", 1)
        data = {
            "isbn": str(next(isbns)),
            "title": "Test Book",
            "author": "Test Author",
            "publication_year": 2020,
            "total_copies": total,
            "available_copies": overrides.pop("available_copies", total),
        }
        data.update(overrides)
        return catalog.register_book(data)

    return _make_book


@pytest.fixture
def make_member(catalog: CatalogService) -> Callable[..., Member]:
    """Register active members with unique numbers and emails."""
    numbers = itertools.count(1001)

    def _make_member(**overrides) -> Member:
        number = next(numbers)
        data = {
            "member_number": str(number),
            "name": f"Test Member {number}",
            "email": f"member{number}@example.com",
        }
        data.update(overrides)
        return catalog.register_member(data)

    return _make_member
