from types import SimpleNamespace

import pytest
import stripe

from conftest import WEBHOOK_SECRET, make_user, make_tipster, make_offer, make_event, remote_subscription, sign_payload
from exceptions import PaymentGatewayError, RemoteTransientError, WebhookSignatureError
from payment.gateway import StripeGateway
from payment.models import WebhookEvent
from subscription.models import Subscription, SubscriptionStatus


class Endpoint:
    """Stands in for one SDK method; replays ``outcomes`` in order and counts calls."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def connection_error():
    return stripe.APIConnectionError("Connection reset by peer")


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr("payment.gateway.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def real_gateway():
    return StripeGateway(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET, retry_attempts=3, backoff_seconds=0.5)


def stub_client(gateway, **resources):
    gateway.client = SimpleNamespace(**{name: SimpleNamespace(**methods) for name, methods in resources.items()})


class TestRetries:
    def test_retrieval_is_retried_with_backoff_then_gives_up(self, real_gateway, sleeps):
        retrieve = Endpoint(connection_error())
        stub_client(real_gateway, subscriptions={"retrieve": retrieve})

        with pytest.raises(RemoteTransientError) as excinfo:
            real_gateway.retrieve_subscription("sub_1")

        assert retrieve.calls == 3
        assert sleeps == [0.5, 1.0]
        assert excinfo.value.status_code == 503
        assert excinfo.value.details["operation"] == "subscription retrieval"

    def test_retrieval_recovers_after_transient_failure(self, real_gateway, sleeps):
        snapshot = {"id": "sub_1", "status": "active"}
        retrieve = Endpoint(stripe.RateLimitError("Too many requests"), snapshot)
        stub_client(real_gateway, subscriptions={"retrieve": retrieve})

        assert real_gateway.retrieve_subscription("sub_1") == snapshot
        assert retrieve.calls == 2
        assert sleeps == [0.5]

    def test_cancellation_is_retried(self, real_gateway, sleeps):
        cancel = Endpoint(connection_error(), {"id": "sub_1", "status": "canceled"})
        stub_client(real_gateway, subscriptions={"cancel": cancel})

        real_gateway.cancel_subscription("sub_1", immediately=True)

        assert cancel.calls == 2

    def test_checkout_session_creation_is_never_retried(self, real_gateway, sleeps):
        create = Endpoint(connection_error())
        real_gateway.client = SimpleNamespace(checkout=SimpleNamespace(sessions=SimpleNamespace(create=create)))

        with pytest.raises(RemoteTransientError):
            real_gateway.create_checkout_session(
                customer_id="cus_1",
                price_id="price_1",
                one_time=False,
                success_url="https://example.com/ok",
                cancel_url="https://example.com/cancel",
                destination_account_id="acct_1",
                fee_percent=10,
                fee_amount=100,
                trial_days=None,
                metadata={"user_id": "1", "offer_id": "1"},
            )

        assert create.calls == 1
        assert sleeps == []

    @pytest.mark.parametrize("resource, method, call", [
        ("products", "create", lambda g: g.create_product("Premium", None, {})),
        ("prices", "create", lambda g: g.create_price("prod_1", "eur", 999, "month", {})),
        ("customers", "create", lambda g: g.create_customer("bob@example.com", {})),
        ("accounts", "create", lambda g: g.create_connect_account("alice@example.com", {})),
    ])
    def test_creations_are_never_retried(self, real_gateway, sleeps, resource, method, call):
        endpoint = Endpoint(connection_error())
        stub_client(real_gateway, **{resource: {method: endpoint}})

        with pytest.raises(RemoteTransientError):
            call(real_gateway)

        assert endpoint.calls == 1
        assert sleeps == []


class TestErrorTranslation:
    def test_rejection_maps_to_gateway_error_without_retry(self, real_gateway, sleeps):
        retrieve = Endpoint(stripe.InvalidRequestError("No such subscription: 'sub_x'", "id"))
        stub_client(real_gateway, subscriptions={"retrieve": retrieve})

        with pytest.raises(PaymentGatewayError) as excinfo:
            real_gateway.retrieve_subscription("sub_x")

        assert retrieve.calls == 1
        assert sleeps == []
        assert excinfo.value.status_code == 502
        assert excinfo.value.details["operation"] == "subscription retrieval"

    def test_checkout_session_without_url_is_an_error(self, real_gateway):
        create = Endpoint(SimpleNamespace(id="cs_1", url=None))
        real_gateway.client = SimpleNamespace(checkout=SimpleNamespace(sessions=SimpleNamespace(create=create)))

        with pytest.raises(PaymentGatewayError):
            real_gateway.create_checkout_session(
                customer_id="cus_1",
                price_id="price_1",
                one_time=True,
                success_url="https://example.com/ok",
                cancel_url="https://example.com/cancel",
                destination_account_id="acct_1",
                fee_percent=10,
                fee_amount=100,
                trial_days=None,
                metadata={},
            )


class TestPriceExists:
    def test_active_price_exists(self, real_gateway):
        stub_client(real_gateway, prices={"retrieve": Endpoint({"id": "price_1", "active": True})})

        assert real_gateway.price_exists("price_1") is True

    def test_archived_price_does_not_exist(self, real_gateway):
        stub_client(real_gateway, prices={"retrieve": Endpoint({"id": "price_1", "active": False})})

        assert real_gateway.price_exists("price_1") is False

    def test_missing_price_does_not_exist(self, real_gateway):
        stub_client(real_gateway, prices={"retrieve": Endpoint(stripe.InvalidRequestError("No such price", "price"))})

        assert real_gateway.price_exists("price_gone") is False

    def test_outage_is_not_mistaken_for_missing_price(self, real_gateway, sleeps):
        stub_client(real_gateway, prices={"retrieve": Endpoint(connection_error())})

        with pytest.raises(RemoteTransientError):
            real_gateway.price_exists("price_1")


class TestConstructEvent:
    def test_valid_signature_returns_event(self, real_gateway):
        payload = '{"id": "evt_1", "object": "event", "type": "invoice.paid", "data": {"object": {}}}'

        event = real_gateway.construct_event(payload.encode("utf-8"), sign_payload(payload))

        assert event["id"] == "evt_1"

    def test_missing_header_is_rejected(self, real_gateway):
        with pytest.raises(WebhookSignatureError):
            real_gateway.construct_event(b"{}", None)

    def test_wrong_secret_is_rejected(self, real_gateway):
        payload = '{"id": "evt_1", "object": "event"}'

        with pytest.raises(WebhookSignatureError):
            real_gateway.construct_event(payload.encode("utf-8"), sign_payload(payload, secret="whsec_other"))


class TestWebhookOutage:
    def test_transient_failure_returns_503_and_redelivery_succeeds(self, db, gateway, post_event):
        offer = make_offer(db, make_tipster(db, make_user(db, "alice")))
        buyer = make_user(db, "bob")
        gateway.remote_subscriptions["sub_1"] = remote_subscription("sub_1", "active")
        event = make_event("checkout.session.completed", {
            "id": "cs_1",
            "object": "checkout.session",
            "mode": "subscription",
            "subscription": "sub_1",
            "metadata": {"user_id": str(buyer.id), "offer_id": str(offer.id)},
        })
        gateway.fail_retrievals = True

        outage = post_event(event)

        assert outage.status_code == 503
        assert outage.json()["error"] == "REMOTE_TRANSIENT"
        assert db.query(WebhookEvent).count() == 0
        assert db.query(Subscription).count() == 0

        gateway.fail_retrievals = False
        redelivery = post_event(event)

        assert redelivery.status_code == 200
        assert redelivery.json()["outcome"] == "created"
        assert db.query(Subscription).one().status == SubscriptionStatus.ACTIVE
