"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Generator
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from proposal_gateway.api.dependencies import get_clock
from proposal_gateway.api.main import create_app
from proposal_gateway.domain.enums import Category, PaymentMethod, RiskTier, SalesChannel
from proposal_gateway.domain.models import Money
from proposal_gateway.domain.proposal import PolicyProposal
from proposal_gateway.infrastructure.database.models import Base
from proposal_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; each call moves one second forward"""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sent_events() -> Generator[AsyncMock, None, None]:
    """Capture decision webhook deliveries instead of posting them"""
    with patch(
        "proposal_gateway.infrastructure.clients.events.DecisionEventClient.send_event",
        new_callable=AsyncMock,
    ) as mock_send:
        yield mock_send


@pytest.fixture
def client(db: Session, clock: FakeClock, sent_events: AsyncMock) -> TestClient:
    """Create FastAPI test client with test database and a fake clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)


@pytest.fixture
def make_proposal() -> Callable[..., PolicyProposal]:
    """Factory for proposals in RECEIVED with sensible intake defaults"""

    def _make(
        insured_amount: str = "250000.00",
        category: Category = Category.AUTO,
        now: datetime = T0,
        **overrides,
    ) -> PolicyProposal:
        fields = dict(
            customer_id=uuid.UUID("adc56d77-348c-4bf0-908f-22d402ee715c"),
            product_id="1b2da7cc-b367-4196-8a78-9cfeec21f587",
            category=category,
            sales_channel=SalesChannel.MOBILE,
            payment_method=PaymentMethod.CREDIT_CARD,
            monthly_premium=Money(Decimal("75.25")),
            insured_amount=Money(Decimal(insured_amount)),
            coverages={
                "Theft": Money(Decimal("100000.25")),
                "Total loss": Money(Decimal("100000.25")),
            },
            assistances=["Towing up to 250km", "24h locksmith"],
            now=now,
        )
        fields.update(overrides)
        return PolicyProposal.create(**fields)

    return _make


@pytest.fixture
def pending_proposal(make_proposal) -> PolicyProposal:
    """Proposal that passed underwriting and awaits both verdicts"""
    proposal = make_proposal()
    proposal.validate(RiskTier.REGULAR, T0 + timedelta(minutes=1))
    proposal.mark_as_pending(T0 + timedelta(minutes=2))
    return proposal


@pytest.fixture
def intake_payload() -> dict:
    """Valid POST /v1/proposals body"""
    return {
        "customer_id": "adc56d77-348c-4bf0-908f-22d402ee715c",
        "product_id": "1b2da7cc-b367-4196-8a78-9cfeec21f587",
        "category": "AUTO",
        "sales_channel": "MOBILE",
        "payment_method": "CREDIT_CARD",
        "total_monthly_premium_amount": "75.25",
        "insured_amount": "275000.50",
        "coverages": {"Theft": "100000.25", "Total loss": "100000.25", "Third-party collision": "75000.00"},
        "assistances": ["Towing up to 250km", "Oil change", "24h locksmith"],
    }
