"""
Pytest configuration and fixtures for testing.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.errors import NotFoundError, RemoteProviderError
from app.db.base import Base
from app.db.models.subscription import Subscription
from app.services.stripe_service import RemoteCharge, RemoteCustomer, RemoteSubscription
import app.db.models  # noqa: F401


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PERIOD_START = datetime(2026, 10, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2026, 11, 1, tzinfo=timezone.utc)


class FakeBillingClient:
    """
    In-memory stand-in for StripeBillingClient.
    
    Records every call in `calls`; names listed in `fail` raise
    RemoteProviderError instead of succeeding.
    """

    def __init__(self):
        self.calls = []
        self.fail = set()
        self.customers = {}
        self.charges = {}
        self.refunds = []

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise RemoteProviderError(f"Stripe unavailable during {name}")

    def call_names(self):
        return [call[0] for call in self.calls]

    def retrieve_subscription(self, subscription_id):
        self._call("retrieve_subscription", subscription_id)
        return RemoteSubscription(id=subscription_id, status="active",
                                  current_period_start=PERIOD_START, current_period_end=PERIOD_END)

    def pause_subscription(self, subscription_id):
        self._call("pause_subscription", subscription_id)
        return RemoteSubscription(id=subscription_id, status="active")

    def resume_subscription(self, subscription_id):
        self._call("resume_subscription", subscription_id)
        return RemoteSubscription(id=subscription_id, status="active")

    def cancel_subscription(self, subscription_id):
        self._call("cancel_subscription", subscription_id)
        return RemoteSubscription(id=subscription_id, status="canceled")

    def set_cancel_at_period_end(self, subscription_id, cancel_at_period_end):
        self._call("set_cancel_at_period_end", subscription_id, cancel_at_period_end)
        return RemoteSubscription(id=subscription_id, status="active", cancel_at_period_end=cancel_at_period_end)

    def retrieve_customer(self, customer_id):
        self._call("retrieve_customer", customer_id)
        customer = self.customers.get(customer_id)
        if customer is None or customer.deleted:
            raise NotFoundError("Customer deleted")
        return customer

    def list_charges(self, customer_id, limit=1, created_after=None):
        self._call("list_charges", customer_id, limit)
        return self.charges.get(customer_id, [])[:limit]

    def create_refund(self, charge_id):
        self._call("create_refund", charge_id)
        self.refunds.append(charge_id)
        return f"re_{charge_id}"

    def create_customer(self, email, user_id):
        self._call("create_customer", email, user_id)
        return f"cus_{user_id}"

    def create_checkout_session(self, customer_id, user_id, price_id, success_url, cancel_url):
        self._call("create_checkout_session", customer_id, user_id, price_id, success_url, cancel_url)
        return f"https://checkout.stripe.test/{customer_id}"

    def create_billing_portal_session(self, customer_id, return_url):
        self._call("create_billing_portal_session", customer_id, return_url)
        return f"https://billing.stripe.test/{customer_id}"


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def billing():
    return FakeBillingClient()


@pytest.fixture
def make_subscription(db):
    """Factory inserting a subscription record with sensible defaults."""
    def _make(user_id="user-1", **fields):
        values = {
            "plan": "free",
            "status": "active",
            "cancel_at_period_end": False,
            "pro_override": False,
            "updated_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }
        values.update(fields)
        sub = Subscription(user_id=user_id, **values)
        db.add(sub)
        db.commit()
        db.refresh(sub)
        return sub
    return _make


@pytest.fixture
def paid_subscription(make_subscription):
    """Active pro subscription backed by Stripe."""
    return make_subscription(
        plan="pro",
        status="active",
        stripe_customer_id="cus_123",
        stripe_subscription_id="sub_123",
        current_period_start=PERIOD_START,
        current_period_end=PERIOD_END,
    )


def future(days=7):
    return datetime.now(timezone.utc) + timedelta(days=days)


def past(days=7):
    return datetime.now(timezone.utc) - timedelta(days=days)


def make_charge(charge_id="ch_1", amount=2900, currency="usd", refunded=False):
    return RemoteCharge(id=charge_id, amount=amount, currency=currency, refunded=refunded)


def make_customer(customer_id="cus_123", subscriptions=None, deleted=False):
    return RemoteCustomer(id=customer_id, deleted=deleted, subscriptions=subscriptions or [])
