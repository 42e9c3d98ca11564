"""
Shared test fixtures for the entitlement engine test suite.
"""

from typing import Any

import httpx
import pytest
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from entitlements.config import get_settings
from entitlements.constants import UNLIMITED_SENTINEL
from entitlements.models.entitlement import EntitlementSnapshot

BACKEND_URL = "http://backend.test"

_SETTINGS_ENV_VARS = (
    "API_BASE_URL",
    "APP_ORIGIN",
    "DEBUG",
    "HTTP__TIMEOUT_SECONDS",
    "ENTITLEMENTS__FALLBACK_POLICY",
    "CHECKOUT__SUCCESS_PATH",
    "CHECKOUT__CANCEL_PATH",
)


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from default settings."""
    for name in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _configure_structlog_for_tests():
    """Configure structlog for tests using a simple, deterministic setup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# --- Wire payloads (camelCase, as the backend sends them) ---


def trial_payload(**usage_overrides: Any) -> dict:
    """Active trial, 45 days left, under every limit."""
    usage = {
        "leadsCreatedToday": 5,
        "leadsLimitPerDay": 20,
        "totalProperties": 3,
        "propertiesLimit": 10,
        "rentCastRequestsToday": 1,
        "rentCastLimitPerDay": 3,
        "aiLeadScoresToday": 10,
        "aiLeadScoresLimitPerDay": 50,
        "messagingAllowed": False,
    }
    usage.update(usage_overrides)
    return {
        "plan": "trial",
        "isInTrial": True,
        "isTrialExpired": False,
        "hasActiveSubscription": False,
        "subscriptionOverride": False,
        "daysRemaining": 45,
        "trialEndDate": "2026-03-15T00:00:00Z",
        "currentPeriodEnd": None,
        "usage": usage,
    }


def pro_payload(*, override: bool = False) -> dict:
    """Paid (or overridden) account already past the nominal free limits."""
    return {
        "plan": "pro",
        "isInTrial": False,
        "isTrialExpired": False,
        "hasActiveSubscription": not override,
        "subscriptionOverride": override,
        "daysRemaining": 0,
        "trialEndDate": None,
        "currentPeriodEnd": None if override else "2026-02-01T00:00:00Z",
        "usage": {
            "leadsCreatedToday": 50,
            "leadsLimitPerDay": UNLIMITED_SENTINEL,
            "totalProperties": 25,
            "propertiesLimit": UNLIMITED_SENTINEL,
            "rentCastRequestsToday": 10,
            "rentCastLimitPerDay": UNLIMITED_SENTINEL,
            "aiLeadScoresToday": 100,
            "aiLeadScoresLimitPerDay": UNLIMITED_SENTINEL,
            "messagingAllowed": True,
        },
    }


def expired_payload() -> dict:
    payload = trial_payload()
    payload.update(plan="expired", isInTrial=False, isTrialExpired=True, daysRemaining=0)
    return payload


def legacy_free_payload(leads_created_today: int = 5) -> dict:
    """Plan-only payload from the pre-trial backend."""
    return {
        "plan": "free",
        "hasActiveSubscription": False,
        "subscriptionOverride": False,
        "currentPeriodEnd": None,
        "usage": {
            "leadsCreatedToday": leads_created_today,
            "leadsLimitPerDay": 20,
            "totalProperties": 0,
            "propertiesLimit": 10,
        },
    }


@pytest.fixture
def trial_snapshot() -> EntitlementSnapshot:
    return EntitlementSnapshot.model_validate(trial_payload())


@pytest.fixture
def pro_snapshot() -> EntitlementSnapshot:
    return EntitlementSnapshot.model_validate(pro_payload())


# --- Fake backend ---


class FakeBackend:
    """Programmable stand-in for the three backend endpoints."""

    def __init__(self) -> None:
        self.status_code = 200
        self.status_body: Any = trial_payload()
        self.checkout_code = 200
        self.checkout_body: Any = {"url": "https://checkout.stripe.com/c/pay/cs_test_123"}
        self.portal_code = 200
        self.portal_body: Any = {"url": "https://billing.stripe.com/p/session/bps_123"}
        self.requests: list[dict] = []
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        async def _record(request: Request) -> None:
            raw = await request.body()
            self.requests.append(
                {
                    "method": request.method,
                    "path": request.url.path,
                    "authorization": request.headers.get("authorization"),
                    "content_type": request.headers.get("content-type"),
                    "body": raw,
                }
            )

        @app.get("/api/subscription/status")
        async def subscription_status(request: Request) -> JSONResponse:
            await _record(request)
            return JSONResponse(self.status_body, status_code=self.status_code)

        @app.post("/api/stripe/create-checkout-session")
        async def create_checkout_session(request: Request) -> JSONResponse:
            await _record(request)
            return JSONResponse(self.checkout_body, status_code=self.checkout_code)

        @app.post("/api/stripe/create-portal-session")
        async def create_portal_session(request: Request) -> JSONResponse:
            await _record(request)
            return JSONResponse(self.portal_body, status_code=self.portal_code)

        return app

    def paths(self) -> list[str]:
        return [r["path"] for r in self.requests]


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def backend_transport(fake_backend: FakeBackend) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=fake_backend.app)
