"""共享测试夹具：内存数据库、测试用户、假支付网关."""

import itertools
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from services.auth import Principal
from services.config import ServiceConfig
from services.db.connection import Database
from services.db.models import SubscriptionTier, User, UserRole
from services.errors import NotFound, PaymentProviderUnavailable
from services.payment import CheckoutSession
from services.user_service import UserService
from web.dependencies import limiter

ADMIN_EMAIL = "admin@issuehub.org"
ADMIN_PASSWORD = "admin-secret"


class FakeCheckoutProvider:
    """内存版支付网关，行为与 StripeCheckoutProvider 的契约一致."""

    def __init__(self):
        self.sessions: Dict[str, CheckoutSession] = {}
        self.retrieve_calls = 0
        self.unavailable = False
        self._ids = itertools.count(1)

    async def create_session(self, amount, currency, description, metadata, success_url, cancel_url):
        session_id = f"cs_test_{next(self._ids)}"
        checkout = CheckoutSession(
            id=session_id,
            url=f"https://checkout.example/{session_id}",
            payment_status="unpaid",
            amount_total=amount,
            currency=currency.lower(),
            metadata=dict(metadata),
        )
        self.sessions[session_id] = checkout
        return checkout

    async def retrieve_session(self, session_id):
        self.retrieve_calls += 1
        if self.unavailable:
            raise PaymentProviderUnavailable()
        if session_id not in self.sessions:
            raise NotFound("Payment session not found")
        return self.sessions[session_id]

    def mark_paid(self, session_id, amount: Optional[int] = None, **metadata):
        checkout = self.sessions[session_id]
        checkout.payment_status = "paid"
        if amount is not None:
            checkout.amount_total = amount
        checkout.metadata.update(metadata)
        return checkout

    async def close(self):
        pass


@pytest.fixture(autouse=True)
def _disable_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def settings(tmp_path):
    return ServiceConfig(
        DB_PATH=":memory:",
        JWT_SECRET="test-secret",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        LOG_DIR=str(tmp_path / "logs"),
        FREE_ISSUE_LIMIT=3,
        BOOST_PRICE=10000,
        PREMIUM_PRICE=100000,
        CURRENCY="bdt",
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
    )


@pytest.fixture
def db(settings):
    database = Database(settings.DB_PATH)
    database.connect()
    yield database
    database.close()


@pytest.fixture
def session(db):
    session = db.session()
    yield session
    session.close()


@pytest.fixture
def provider():
    return FakeCheckoutProvider()


@pytest.fixture
def make_user(session):
    counter = itertools.count(1)

    def _make(role: UserRole = UserRole.CITIZEN, name: Optional[str] = None, premium: bool = False) -> User:
        n = next(counter)
        user = UserService(session).register(
            name=name or f"{role.value.title()} {n}",
            email=f"{role.value}{n}@issuehub.org",
            password="password123",
            role=role,
        )
        if premium:
            user.subscription = SubscriptionTier.PREMIUM
            session.add(user)
            session.commit()
            session.refresh(user)
        return user

    return _make


@pytest.fixture
def citizen(make_user) -> Principal:
    return Principal.from_user(make_user(UserRole.CITIZEN, name="Tufayel"))


@pytest.fixture
def neighbour(make_user) -> Principal:
    return Principal.from_user(make_user(UserRole.CITIZEN, name="Rahim"))


@pytest.fixture
def staff(make_user) -> Principal:
    return Principal.from_user(make_user(UserRole.STAFF, name="Karim"))


@pytest.fixture
def admin(make_user) -> Principal:
    return Principal.from_user(make_user(UserRole.ADMIN, name="Admin"))


# --- HTTP ---

@pytest.fixture
def client(settings, provider):
    from web_app import create_app

    app = create_app(settings, payment_provider=provider, configure_logging=False)
    with TestClient(app) as test_client:
        yield test_client


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login(client):
    def _login(email: str, password: str) -> dict:
        resp = client.post("/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return auth_header(resp.json()["token"])

    return _login


@pytest.fixture
def register(client):
    def _register(name: str, email: str, password: str = "password123") -> dict:
        resp = client.post("/register", json={"name": name, "email": email, "password": password})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return {"headers": auth_header(body["token"]), "user": body["user"]}

    return _register
