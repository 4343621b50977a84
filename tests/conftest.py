# tests/conftest.py
"""
Pytest configuration for TutorHub.

Every test gets a fresh in-memory SQLite database. Route tests run through
FastAPI's TestClient with ``get_db`` overridden to yield the same session,
so a test can arrange data with services and assert on it over HTTP.
"""

import os

# Set the environment BEFORE any tutorhub imports
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["CI"] = "true"

from datetime import date, time, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterator, Optional
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tutorhub.core.config import settings

# Booking locks are fail-open without Redis
settings.redis_url = None

from tutorhub.api.dependencies.database import get_db
from tutorhub.core.ulid_helper import generate_ulid
from tutorhub.database import Base
from tutorhub.main import app
import tutorhub.models  # noqa: F401  registers every table on Base.metadata
from tutorhub.models.booking import Booking
from tutorhub.models.wallet import Wallet, WalletType
from tutorhub.repositories.guardian_link_repository import GuardianLinkRepository
from tutorhub.services.booking_service import BookingService
from tutorhub.services.config_service import ConfigService
from tutorhub.services.conflict_checker import ConflictChecker
from tutorhub.services.wallet_service import WalletService


def next_weekday(weekday: int) -> date:
    """The given weekday (0 = Monday) one to two weeks from today."""
    today = date.today()
    return today + timedelta(days=((weekday - today.weekday()) % 7) + 7)


@pytest.fixture(scope="function")
def db() -> Iterator[Session]:
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Iterator[None]:
    """Platform settings are cached per process; start every test cold."""
    ConfigService.invalidate()
    yield
    ConfigService.invalidate()


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def wallet_service(db: Session) -> WalletService:
    return WalletService(db)


@pytest.fixture
def conflict_checker(db: Session) -> ConflictChecker:
    return ConflictChecker(db)


@pytest.fixture
def funded_wallet(wallet_service: WalletService) -> Callable[..., Wallet]:
    """Create a wallet and credit it through the ledger."""

    def _make(wallet_type: WalletType, amount: str = "0", user_id: str = "") -> Wallet:
        wallet = wallet_service.get_or_create_wallet(user_id or generate_ulid(), wallet_type)
        if Decimal(amount) > 0:
            if wallet_type == WalletType.TEACHER:
                wallet_service.add_earnings(wallet, amount)
            else:
                wallet_service.add_funds(wallet, amount)
        return wallet

    return _make


@pytest.fixture
def link_child(db: Session) -> Callable[[str, str], None]:
    def _link(guardian_id: str, student_id: str) -> None:
        GuardianLinkRepository(db).link(guardian_id, student_id)
        db.commit()

    return _link


@pytest.fixture
def teacher_schedule(conflict_checker: ConflictChecker) -> Callable[..., str]:
    """Give a teacher a window on each listed weekday; returns the teacher id."""

    def _make(
        days: Optional[Dict[int, tuple]] = None,
        teacher_id: str = "",
    ) -> str:
        teacher_id = teacher_id or generate_ulid()
        for day_of_week, (start, end) in (days or {0: (time(9, 0), time(12, 0))}).items():
            conflict_checker.set_day_availability(teacher_id, day_of_week, start, end)
        return teacher_id

    return _make


@pytest.fixture
def monday() -> date:
    return next_weekday(0)


@pytest.fixture
def make_id() -> Callable[[], str]:
    return generate_ulid


@pytest.fixture
def upcoming_weekday() -> Callable[[int], date]:
    return next_weekday


@pytest.fixture
def booking_service(db: Session, conflict_checker: ConflictChecker, wallet_service: WalletService):
    return BookingService(
        db,
        conflict_checker=conflict_checker,
        wallet_service=wallet_service,
        notification_service=MagicMock(),
    )


@pytest.fixture
def make_booking(booking_service, monday: date) -> Callable[..., Booking]:
    """Book a free teacher slot; defaults to Monday 09:00 for 60 minutes."""

    def _make(
        teacher_id: str,
        student_id: str = "",
        booking_date: Optional[date] = None,
        start: time = time(9, 0),
        duration: int = 60,
        price: Optional[str] = None,
    ) -> Booking:
        return booking_service.create_booking(
            student_id=student_id or generate_ulid(),
            teacher_id=teacher_id,
            subject_id=generate_ulid(),
            booking_date=booking_date or monday,
            start_time=start,
            duration_minutes=duration,
            price=price,
        )

    return _make
