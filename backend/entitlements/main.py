"""
Entitlement engine wiring.

Builds the HTTP client, fetcher, session initiator and store from Settings,
and tears the client down on exit.

Usage:
    async with open_entitlement_store(token=auth_token) as store:
        if store.gates.can_create_lead:
            ...
        await store.create_checkout_session()
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog

from entitlements.config import Settings, get_settings
from entitlements.logging_config import setup_logging
from entitlements.navigation import Navigator, WebBrowserNavigator
from entitlements.services.entitlement_store import EntitlementStore
from entitlements.services.session_initiator import SessionInitiator, TransitionListener
from entitlements.services.status_fetcher import StatusFetcher

logger = structlog.get_logger(__name__)


def build_entitlement_store(
    client: httpx.AsyncClient,
    settings: Settings,
    navigator: Navigator,
    on_transition: TransitionListener | None = None,
) -> EntitlementStore:
    """Assemble a store around an existing client. The caller owns the client."""
    fetcher = StatusFetcher(
        client,
        settings.api_base_url,
        fallback_policy=settings.entitlements.fallback_policy,
    )
    initiator = SessionInitiator(
        client,
        settings.api_base_url,
        navigator,
        success_url=settings.checkout_success_url,
        cancel_url=settings.checkout_cancel_url,
        on_transition=on_transition,
    )
    return EntitlementStore(fetcher, initiator)


@asynccontextmanager
async def open_entitlement_store(
    settings: Settings | None = None,
    navigator: Navigator | None = None,
    token: str | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    configure_logging: bool = False,
) -> AsyncIterator[EntitlementStore]:
    """
    Open a store for one client session.

    Args:
        settings:          Defaults to get_settings().
        navigator:         Defaults to the system web browser.
        token:             When given, the store signs in and loads the snapshot.
        transport:         Optional httpx transport (tests, custom proxies).
        configure_logging: Run setup_logging(settings.debug) first.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.debug)

    client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http.timeout_seconds),
        transport=transport,
    )
    store = build_entitlement_store(client, settings, navigator or WebBrowserNavigator())
    logger.info(
        "entitlement_store_opened",
        api_base_url=settings.api_base_url,
        fallback_policy=settings.entitlements.fallback_policy,
    )

    try:
        if token:
            await store.login(token)
        yield store
    finally:
        store.logout()
        await client.aclose()
        logger.info("entitlement_store_closed")
