# tests/conftest.py
"""
Fixtures and test setup for the Pytest suite.

Every external gateway (Cashfree, Sandbox KYC, Groww, Web Push, SendGrid) is
replaced by a MagicMock with AsyncMock methods; the database is a real
SQLite file that is rebuilt for every test.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables BEFORE any application code is imported.
_DB_DIR = tempfile.mkdtemp(prefix="alphamarket-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "true"
os.environ["ADMIN_NOTIFICATION_EMAIL"] = "admin@alphamarket.test"

from fastapi.testclient import TestClient

from alphamarket.boot import build_services
from alphamarket.domain.entities import UserRole
from alphamarket.infrastructure.db.base import engine
from alphamarket.infrastructure.db.models import Base, Plan, Strategy, User
from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.infrastructure.notify.push import PushBatchResult
from alphamarket.interfaces.api.main import create_app
from alphamarket.interfaces.api.security.auth import create_access_token

PASSWORD = "secret123"


@dataclass
class Account:
    id: str
    username: str
    token: str

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture(autouse=True)
def db():
    """A fresh schema for every test."""
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


# --- Fake gateways ---

@pytest.fixture
def cashfree():
    client = MagicMock()
    client.create_order = AsyncMock(return_value={"payment_session_id": "session_abc"})
    client.fetch_order = AsyncMock(return_value={"order_status": "ACTIVE"})
    client.fetch_payments = AsyncMock(return_value=[])
    client.verify_webhook_signature = MagicMock(return_value=True)
    return client


@pytest.fixture
def kyc():
    client = MagicMock()
    client.send_aadhaar_otp = AsyncMock(return_value={
        "reference_id": "ref-1", "message": "OTP sent successfully", "transaction_id": "tx-1",
    })
    client.verify_aadhaar_otp = AsyncMock(return_value={
        "name": "Asha Rao", "dob": "01-01-1990", "gender": "F", "address": "Pune, Maharashtra", "transaction_id": "tx-2",
    })
    client.verify_pan = AsyncMock(return_value={
        "pan": "ABCPE1234F", "status": "valid", "category": "individual",
        "name_match": True, "dob_match": True, "aadhaar_linked": True, "transaction_id": "tx-3",
    })
    return client


@pytest.fixture
def push_sender():
    sender = MagicMock()
    sender.public_key = "test-public-key"
    sender.enabled = True
    sender.send_many = AsyncMock(return_value=PushBatchResult(sent=1))
    return sender


@pytest.fixture
def mailer():
    client = MagicMock()
    client.send = AsyncMock(return_value={"status": "sent", "message_id": "msg-1"})
    return client


@pytest.fixture
def groww():
    client = MagicMock()
    client.get_live_prices = AsyncMock(return_value={})
    client.get_bulk_ltp = AsyncMock(return_value={})
    client.get_option_expiries = AsyncMock(return_value=[])
    client.get_option_chain = AsyncMock(return_value=[])
    client.token_status = MagicMock(return_value={"hasToken": False, "source": "none"})
    return client


@pytest.fixture
def services(cashfree, kyc, push_sender, mailer, groww):
    """
    Real services over the test database, with every outbound integration
    mocked and the payment poller's sleep stubbed out.
    """
    return build_services(
        cashfree_client=cashfree,
        kyc_client=kyc,
        groww_client=groww,
        push_sender=push_sender,
        mailer=mailer,
        sleep=AsyncMock(),
    )


@pytest.fixture
def client(services):
    app = create_app(services=services)
    with TestClient(app) as test_client:
        yield test_client


# --- Accounts ---

def register(client: TestClient, username: str, role: str = "investor", **extra) -> Account:
    body = {"username": username, "email": f"{username}@example.com", "password": PASSWORD, "role": role, **extra}
    response = client.post("/api/auth/register", json=body)
    assert response.status_code == 201, response.text
    data = response.json()
    return Account(id=data["user"]["id"], username=username, token=data["token"])


@pytest.fixture
def make_account(client):
    def _make(username: str, role: str = "investor", **extra) -> Account:
        return register(client, username, role, **extra)
    return _make


@pytest.fixture
def advisor(client) -> Account:
    return register(client, "advisor1", role="advisor", companyName="Alpha Research", sebiRegNumber="INH000001234")


@pytest.fixture
def investor(client) -> Account:
    return register(client, "investor1")


@pytest.fixture
def admin(client) -> Account:
    account = register(client, "admin1")
    with session_scope() as session:
        session.get(User, account.id).role = UserRole.ADMIN
    return Account(id=account.id, username=account.username, token=create_access_token(account.id, roles=["admin"]))


@pytest.fixture
def strategy(client, advisor) -> dict:
    """A Published equity strategy with one 30-day plan."""
    response = client.post(
        "/api/strategies",
        json={"name": "Momentum Leaders", "type": "Equity", "status": "Published", "horizon": "Swing"},
        headers=advisor.headers,
    )
    assert response.status_code == 201, response.text
    plan = client.post("/api/plans", json={"name": "Monthly", "amount": 999, "durationDays": 30}, headers=advisor.headers)
    assert plan.status_code == 201, plan.text
    return {**response.json(), "plan": plan.json()}


# --- Direct database setup for service-level tests ---

@pytest.fixture
def marketplace() -> dict:
    """Advisor, investor, strategy and a paid plan inserted without the API."""
    with session_scope() as session:
        advisor = User(username="adv", email="adv@example.com", password="x", role=UserRole.ADVISOR,
                       is_registered=True, is_approved=True)
        investor = User(username="inv", email="inv@example.com", password="x", role=UserRole.INVESTOR)
        session.add_all([advisor, investor])
        session.flush()
        strategy = Strategy(advisor_id=advisor.id, name="Nifty Swing")
        plan = Plan(advisor_id=advisor.id, name="Quarterly", amount=2499, duration_days=90)
        session.add_all([strategy, plan])
        session.flush()
        return {"advisor_id": advisor.id, "investor_id": investor.id, "strategy_id": strategy.id, "plan_id": plan.id}
