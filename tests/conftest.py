import hashlib
import hmac
import itertools
import json
import os
import time
from datetime import datetime

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
import auth.models  # noqa: F401
import tipster.models  # noqa: F401
import offer.models  # noqa: F401
import subscription.models  # noqa: F401
import content.models  # noqa: F401
import follow.models  # noqa: F401
import payment.models  # noqa: F401
from auth.models import User
from auth.routes import get_current_user, get_optional_user
from content.models import Tip, TipVisibility
from exceptions import PaymentGatewayError, RemoteTransientError
from main import app
from offer.models import Offer, SubscriptionDuration
from payment.gateway import StripeGateway, get_gateway
from subscription.models import Subscription, SubscriptionStatus
from tipster.models import Tipster, TipsterStripeAccount

WEBHOOK_SECRET = "whsec_test_secret"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeGateway(StripeGateway):
    """Records remote calls instead of performing them. Webhook verification is the real one."""

    def __init__(self):
        super().__init__(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET, retry_attempts=1, backoff_seconds=0)
        self.calls = []
        self.remote_subscriptions = {}
        self.remote_accounts = {}
        self.missing_prices = set()
        self.fail_products = False
        self.fail_retrievals = False
        self._ids = itertools.count(1)

    def _record(self, _call_name, **kwargs):
        self.calls.append((_call_name, kwargs))

    def calls_to(self, name):
        return [kwargs for call, kwargs in self.calls if call == name]

    def create_connect_account(self, email, metadata):
        self._record("create_connect_account", email=email, metadata=metadata)
        return f"acct_test_{next(self._ids)}"

    def create_onboarding_link(self, account_id, return_url, refresh_url):
        self._record("create_onboarding_link", account_id=account_id)
        return f"https://connect.stripe.test/setup/{account_id}"

    def create_login_link(self, account_id):
        self._record("create_login_link", account_id=account_id)
        return f"https://connect.stripe.test/express/{account_id}"

    def retrieve_account(self, account_id):
        self._record("retrieve_account", account_id=account_id)
        return self.remote_accounts[account_id]

    def create_product(self, name, description, metadata):
        self._record("create_product", name=name, metadata=metadata)
        if self.fail_products:
            raise PaymentGatewayError("Payment processor rejected product creation")
        return f"prod_test_{next(self._ids)}"

    def create_price(self, product_id, currency, unit_amount, interval, metadata):
        self._record("create_price", product_id=product_id, currency=currency, unit_amount=unit_amount, interval=interval)
        return f"price_test_{next(self._ids)}"

    def price_exists(self, price_id):
        self._record("price_exists", price_id=price_id)
        return price_id not in self.missing_prices

    def create_customer(self, email, metadata):
        self._record("create_customer", email=email)
        return f"cus_test_{next(self._ids)}"

    def create_checkout_session(self, **kwargs):
        self._record("create_checkout_session", **kwargs)
        return "https://checkout.stripe.test/c/pay/cs_test"

    def retrieve_subscription(self, remote_id):
        self._record("retrieve_subscription", remote_id=remote_id)
        if self.fail_retrievals:
            raise RemoteTransientError("Payment processor unavailable during subscription retrieval, please retry")
        return self.remote_subscriptions[remote_id]

    def cancel_subscription(self, remote_id, immediately):
        self._record("cancel_subscription", remote_id=remote_id, immediately=immediately)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type: str, obj: dict, event_id: str = None) -> dict:
    return {
        "id": event_id or f"evt_{event_type.replace('.', '_')}_{obj.get('id')}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def remote_subscription(remote_id, status="active", user_id=None, offer_id=None, period_end=None, **extra) -> dict:
    data = {
        "id": remote_id,
        "object": "subscription",
        "status": status,
        "current_period_end": period_end or int(time.time()) + 30 * 86400,
        "trial_end": None,
        "cancel_at_period_end": False,
        "metadata": {},
    }
    if user_id is not None:
        data["metadata"] = {"user_id": str(user_id), "offer_id": str(offer_id)}
    data.update(extra)
    return data


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db, gateway):
    state = {"user": None}

    def override_get_db():
        yield db

    def override_current_user():
        if state["user"] is None:
            from fastapi import HTTPException
            raise HTTPException(status_code=401, detail="Not authenticated")
        return state["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[get_optional_user] = lambda: state["user"]

    test_client = TestClient(app)

    def login(user):
        state["user"] = user

    test_client.login = login
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def post_event(client):
    def _post(event: dict, signature: str = None):
        payload = json.dumps(event)
        headers = {"Content-Type": "application/json"}
        headers["Stripe-Signature"] = signature if signature is not None else sign_payload(payload)
        return client.post("/payments/webhook", content=payload, headers=headers)
    return _post


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------

def make_user(db, username: str) -> User:
    user = User(username=username, email=f"{username}@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_tipster(db, user: User, onboarded: bool = True, charges_enabled: bool = None) -> Tipster:
    tipster = Tipster(user_id=user.id, display_name=f"{user.username}_tips")
    db.add(tipster)
    db.commit()
    db.refresh(tipster)
    if onboarded or charges_enabled is not None:
        db.add(TipsterStripeAccount(
            tipster_id=tipster.id,
            stripe_account_id=f"acct_{user.username}",
            charges_enabled=onboarded if charges_enabled is None else charges_enabled,
            payouts_enabled=onboarded,
            onboarding_complete=onboarded,
        ))
        db.commit()
        db.refresh(tipster)
    return tipster


def make_offer(db, tipster: Tipster, price: int = 999, duration=SubscriptionDuration.MONTHLY,
               sports=None, is_active: bool = True, name: str = "Premium") -> Offer:
    offer = Offer(
        tipster_id=tipster.id,
        name=name,
        price=price,
        currency="eur",
        duration=duration,
        sports=sports or [],
        is_active=is_active,
        stripe_product_id=f"prod_{name}",
        stripe_price_id=f"price_{name}",
    )
    db.add(offer)
    db.commit()
    db.refresh(offer)
    return offer


def make_subscription(db, user: User, offer: Offer, status=SubscriptionStatus.ACTIVE, **kwargs) -> Subscription:
    subscription = Subscription(user_id=user.id, offer_id=offer.id, status=status, **kwargs)
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


def make_tip(db, tipster: Tipster, visibility=TipVisibility.PREMIUM, sport=None, prediction: str = "Over 2.5 goals",
             odds: float = 1.85, result=None, created_at=None) -> Tip:
    tip = Tip(
        tipster_id=tipster.id,
        event="PSG vs OM",
        prediction=prediction,
        odds=odds,
        result=result,
        created_at=created_at or datetime.utcnow(),
        stake=1,
        explanation="Both sides score freely",
        sport=sport,
        visibility=visibility,
    )
    db.add(tip)
    db.commit()
    db.refresh(tip)
    return tip
