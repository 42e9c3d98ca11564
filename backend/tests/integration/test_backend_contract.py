"""
Integration tests: the wired store against a FastAPI stand-in of the backend.

Requests travel through httpx.ASGITransport, so headers, bodies and status
codes are exercised end to end without a network.
"""

import json

import pytest

from conftest import BACKEND_URL, FakeBackend, pro_payload
from entitlements.config import Settings
from entitlements.errors import ServerRejected, Unauthenticated
from entitlements.main import open_entitlement_store
from entitlements.models.entitlement import AccountState, Plan, UsageCounter, fallback_snapshot
from entitlements.navigation import RecordingNavigator


def _settings(**overrides) -> Settings:
    return Settings(api_base_url=BACKEND_URL, app_origin="https://app.example.com", **overrides)


class TestStatusRead:
    async def test_login_loads_trial_snapshot(self, fake_backend: FakeBackend, backend_transport):
        async with open_entitlement_store(
            _settings(), RecordingNavigator(), token="valid-jwt-token", transport=backend_transport
        ) as store:
            assert store.snapshot.plan == Plan.TRIAL
            assert store.gates.account_state == AccountState.TRIAL_ACTIVE
            assert store.gates.can_access_app is True
            assert store.gates.can_access_messaging is False
            assert store.error is None

        assert fake_backend.requests[0]["authorization"] == "Bearer valid-jwt-token"
        assert fake_backend.paths() == ["/api/subscription/status"]

    async def test_no_token_means_no_request(self, fake_backend: FakeBackend, backend_transport):
        async with open_entitlement_store(
            _settings(), RecordingNavigator(), transport=backend_transport
        ) as store:
            await store.refresh()
            assert store.snapshot is None
            assert store.gates.can_create_lead is False

        assert fake_backend.requests == []

    async def test_server_failure_falls_back(self, fake_backend: FakeBackend, backend_transport):
        fake_backend.status_code = 500
        fake_backend.status_body = {"error": "Server error"}

        async with open_entitlement_store(
            _settings(), RecordingNavigator(), token="tok", transport=backend_transport
        ) as store:
            assert store.snapshot == fallback_snapshot("free")
            assert store.error == "Failed to load subscription status"
            assert store.can_consume(UsageCounter.LEADS_TODAY) is True

    async def test_trial_fallback_policy_from_settings(self, fake_backend: FakeBackend, backend_transport):
        fake_backend.status_code = 503
        settings = _settings(entitlements={"fallback_policy": "trial"})

        async with open_entitlement_store(
            settings, RecordingNavigator(), token="tok", transport=backend_transport
        ) as store:
            assert store.snapshot == fallback_snapshot("trial")
            assert store.gates.can_access_app is True

    async def test_refresh_picks_up_upgrade(self, fake_backend: FakeBackend, backend_transport):
        async with open_entitlement_store(
            _settings(), RecordingNavigator(), token="tok", transport=backend_transport
        ) as store:
            assert store.gates.is_pro is False

            fake_backend.status_body = pro_payload()
            await store.refresh()

            assert store.gates.is_pro is True
            assert store.usage_meter(UsageCounter.LEADS_TODAY).is_unlimited is True

    async def test_store_is_cleared_on_exit(self, backend_transport):
        async with open_entitlement_store(
            _settings(), RecordingNavigator(), token="tok", transport=backend_transport
        ) as store:
            assert store.is_authenticated is True

        assert store.is_authenticated is False
        assert store.snapshot is None


class TestSessionFlows:
    async def test_checkout_navigates_to_returned_url(self, fake_backend: FakeBackend, backend_transport):
        navigator = RecordingNavigator()

        async with open_entitlement_store(
            _settings(), navigator, token="tok", transport=backend_transport
        ) as store:
            url = await store.create_checkout_session()

        assert url == "https://checkout.stripe.com/c/pay/cs_test_123"
        assert navigator.history == [url]

        checkout = fake_backend.requests[-1]
        assert checkout["path"] == "/api/stripe/create-checkout-session"
        assert checkout["authorization"] == "Bearer tok"
        assert checkout["content_type"] == "application/json"
        assert json.loads(checkout["body"]) == {
            "successUrl": "https://app.example.com/#/settings?checkout=success",
            "cancelUrl": "https://app.example.com/#/pricing",
        }

    async def test_checkout_rejection_keeps_user_in_place(self, fake_backend: FakeBackend, backend_transport):
        fake_backend.checkout_code = 400
        fake_backend.checkout_body = {"error": "Checkout failed"}
        navigator = RecordingNavigator()

        async with open_entitlement_store(
            _settings(), navigator, token="tok", transport=backend_transport
        ) as store:
            with pytest.raises(ServerRejected, match="Checkout failed"):
                await store.create_checkout_session()

        assert navigator.history == []

    async def test_portal_navigates(self, fake_backend: FakeBackend, backend_transport):
        fake_backend.status_body = pro_payload()
        navigator = RecordingNavigator()

        async with open_entitlement_store(
            _settings(), navigator, token="tok", transport=backend_transport
        ) as store:
            await store.open_customer_portal()

        assert navigator.current_url == "https://billing.stripe.com/p/session/bps_123"
        portal = fake_backend.requests[-1]
        assert portal["path"] == "/api/stripe/create-portal-session"
        assert portal["body"] == b""

    async def test_signed_out_checkout_sends_nothing(self, fake_backend: FakeBackend, backend_transport):
        async with open_entitlement_store(
            _settings(), RecordingNavigator(), transport=backend_transport
        ) as store:
            with pytest.raises(Unauthenticated):
                await store.create_checkout_session()

        assert fake_backend.requests == []
