from conftest import make_user, make_tipster, make_offer, make_subscription, make_tip
from content.models import Tip
from follow.models import Follow
from offer.models import Offer
from subscription.models import SubscriptionStatus
from tipster.models import Tipster, TipsterStripeAccount


class TestTipsterProfile:
    def test_create_and_fetch(self, client, db):
        user = make_user(db, "alice")
        client.login(user)

        created = client.post("/tipsters/", json={"display_name": "Alice Picks", "bio": "Ligue 1"})
        fetched = client.get(f"/tipsters/{created.json()['id']}")

        assert created.status_code == 200
        assert fetched.json()["display_name"] == "Alice Picks"
        assert client.get("/auth/me").json()["tipster_id"] == created.json()["id"]

    def test_one_profile_per_user(self, client, db):
        user = make_user(db, "alice")
        make_tipster(db, user)
        client.login(user)

        response = client.post("/tipsters/", json={"display_name": "Second"})

        assert response.status_code == 409

    def test_display_name_is_unique(self, client, db):
        make_tipster(db, make_user(db, "alice"))
        client.login(make_user(db, "bob"))

        response = client.post("/tipsters/", json={"display_name": "alice_tips"})

        assert response.status_code == 409

    def test_requires_authentication(self, client, db):
        response = client.post("/tipsters/", json={"display_name": "Nobody"})

        assert response.status_code == 401


class TestConnectOnboarding:
    def test_onboarding_creates_account_once(self, client, db, gateway):
        user = make_user(db, "alice")
        tipster = make_tipster(db, user, onboarded=False)
        client.login(user)
        urls = {"return_url": "https://app.test/done", "refresh_url": "https://app.test/again"}

        first = client.post("/payments/connect/onboard", json=urls)
        second = client.post("/payments/connect/onboard", json=urls)

        assert first.status_code == 200
        assert first.json()["url"] == second.json()["url"]
        assert len(gateway.calls_to("create_connect_account")) == 1
        account = db.query(TipsterStripeAccount).filter(TipsterStripeAccount.tipster_id == tipster.id).one()
        assert account.onboarding_complete is False

    def test_status_without_account(self, client, db):
        user = make_user(db, "alice")
        make_tipster(db, user, onboarded=False)
        client.login(user)

        body = client.get("/payments/connect/status").json()

        assert body["has_account"] is False
        assert body["charges_enabled"] is False

    def test_refresh_pulls_remote_flags(self, client, db, gateway):
        user = make_user(db, "alice")
        make_tipster(db, user, onboarded=False, charges_enabled=False)
        gateway.remote_accounts["acct_alice"] = {
            "id": "acct_alice", "charges_enabled": True, "payouts_enabled": False, "details_submitted": True,
        }
        client.login(user)

        body = client.post("/payments/connect/refresh").json()

        assert body["charges_enabled"] is True
        assert body["payouts_enabled"] is False
        assert body["onboarding_complete"] is True

    def test_dashboard_requires_completed_onboarding(self, client, db):
        user = make_user(db, "alice")
        make_tipster(db, user, onboarded=False, charges_enabled=False)
        client.login(user)

        response = client.get("/payments/connect/dashboard")

        assert response.status_code == 409

    def test_dashboard_link(self, client, db):
        user = make_user(db, "alice")
        make_tipster(db, user)
        client.login(user)

        response = client.get("/payments/connect/dashboard")

        assert response.json()["url"].endswith("acct_alice")


class TestTipsterDirectory:
    def test_list_with_audience_figures(self, client, db):
        alice = make_tipster(db, make_user(db, "alice"))
        make_tipster(db, make_user(db, "carol"))
        bob = make_user(db, "bob")
        make_tip(db, alice)
        make_tip(db, alice)
        make_subscription(db, bob, make_offer(db, alice))
        db.add(Follow(user_id=bob.id, tipster_id=alice.id))
        db.commit()
        client.login(bob)

        body = {p["display_name"]: p for p in client.get("/tipsters/").json()}

        assert set(body) == {"alice_tips", "carol_tips"}
        assert body["alice_tips"]["username"] == "alice"
        assert body["alice_tips"]["tip_count"] == 2
        assert body["alice_tips"]["follower_count"] == 1
        assert body["alice_tips"]["active_subscribers"] == 1
        assert body["alice_tips"]["is_following"] is True
        assert body["carol_tips"]["tip_count"] == 0
        assert body["carol_tips"]["is_following"] is False

    def test_anonymous_profile(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))

        body = client.get(f"/tipsters/{tipster.id}").json()

        assert body["is_following"] is False
        assert body["active_subscribers"] == 0

    def test_my_profile(self, client, db):
        owner = make_user(db, "alice")
        tipster = make_tipster(db, owner)
        client.login(owner)

        response = client.get("/tipsters/me")

        assert response.status_code == 200
        assert response.json()["id"] == tipster.id

    def test_my_profile_without_one(self, client, db):
        client.login(make_user(db, "bob"))

        assert client.get("/tipsters/me").status_code == 404


class TestManageTipster:
    def test_owner_updates_profile(self, client, db):
        owner = make_user(db, "alice")
        tipster = make_tipster(db, owner)
        client.login(owner)

        response = client.patch(f"/tipsters/{tipster.id}", json={"bio": "Serie A only"})

        assert response.status_code == 200
        assert response.json()["bio"] == "Serie A only"
        assert response.json()["display_name"] == "alice_tips"

    def test_rename_to_taken_name(self, client, db):
        make_tipster(db, make_user(db, "carol"))
        owner = make_user(db, "alice")
        tipster = make_tipster(db, owner)
        client.login(owner)

        response = client.patch(f"/tipsters/{tipster.id}", json={"display_name": "carol_tips"})

        assert response.status_code == 409

    def test_other_users_cannot_update(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))
        client.login(make_user(db, "bob"))

        response = client.patch(f"/tipsters/{tipster.id}", json={"bio": "hijacked"})

        assert response.status_code == 403

    def test_delete_removes_tips_follows_and_offers(self, client, db):
        owner = make_user(db, "alice")
        tipster = make_tipster(db, owner)
        make_tip(db, tipster)
        make_offer(db, tipster)
        db.add(Follow(user_id=make_user(db, "bob").id, tipster_id=tipster.id))
        db.commit()
        client.login(owner)

        response = client.delete(f"/tipsters/{tipster.id}")

        assert response.status_code == 204
        assert db.query(Tipster).count() == 0
        assert db.query(Tip).count() == 0
        assert db.query(Offer).count() == 0
        assert db.query(Follow).count() == 0
        assert db.query(TipsterStripeAccount).count() == 0

    def test_delete_refused_with_subscription_history(self, client, db):
        owner = make_user(db, "alice")
        tipster = make_tipster(db, owner)
        make_subscription(db, make_user(db, "bob"), make_offer(db, tipster), status=SubscriptionStatus.CANCELLED)
        client.login(owner)

        response = client.delete(f"/tipsters/{tipster.id}")

        assert response.status_code == 409
        assert response.json()["details"]["subscriptions"] == 1
        assert db.query(Tipster).count() == 1

    def test_other_users_cannot_delete(self, client, db):
        tipster = make_tipster(db, make_user(db, "alice"))
        client.login(make_user(db, "bob"))

        assert client.delete(f"/tipsters/{tipster.id}").status_code == 403
