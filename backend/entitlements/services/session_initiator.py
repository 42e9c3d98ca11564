"""
Payment-provider session flows.

Both flows ask the backend for a provider-hosted URL (checkout or billing
portal) and navigate to it. Each call runs its own state machine:

    IDLE -> REQUESTING -> REDIRECTING | FAILED

Calls are independent: a second call while one is REQUESTING is neither
suppressed nor queued, and whichever call resolves last performs the last
navigation. Disabling the triggering control is the caller's job.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

import httpx
import structlog

from entitlements.constants import (
    CHECKOUT_FAILED_MESSAGE,
    CHECKOUT_SESSION_PATH,
    NOT_AUTHENTICATED_MESSAGE,
    PORTAL_FAILED_MESSAGE,
    PORTAL_SESSION_PATH,
)
from entitlements.errors import (
    EntitlementError,
    MalformedResponse,
    ServerRejected,
    TransportFailure,
    Unauthenticated,
)
from entitlements.navigation import Navigator

logger = structlog.get_logger(__name__)


class SessionFlow(str, Enum):
    CHECKOUT = "checkout"
    PORTAL = "portal"


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    REDIRECTING = "redirecting"
    FAILED = "failed"


TransitionListener = Callable[[SessionFlow, SessionState], None]


class SessionInitiator:
    """Creates checkout / billing-portal sessions and navigates to them."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        navigator: Navigator,
        *,
        success_url: str,
        cancel_url: str,
        on_transition: TransitionListener | None = None,
    ) -> None:
        base = base_url.rstrip("/")
        self._client = client
        self.navigator = navigator
        self.checkout_url = f"{base}{CHECKOUT_SESSION_PATH}"
        self.portal_url = f"{base}{PORTAL_SESSION_PATH}"
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.on_transition = on_transition

    async def create_checkout_session(self, auth_token: str | None) -> str:
        """
        Start a checkout session and navigate to it.

        Returns:
            The provider URL navigated to, exactly as returned by the backend.

        Raises:
            Unauthenticated:   No token; nothing was sent.
            ServerRejected:    Backend refused; message is the backend's or a generic one.
            TransportFailure:  Network error or timeout.
            MalformedResponse: 2xx without a usable ``url``.
        """
        return await self._run(
            SessionFlow.CHECKOUT,
            auth_token,
            url=self.checkout_url,
            payload={"successUrl": self.success_url, "cancelUrl": self.cancel_url},
            failure_message=CHECKOUT_FAILED_MESSAGE,
        )

    async def open_customer_portal(self, auth_token: str | None) -> str:
        """Start a billing-portal session and navigate to it. Raises as create_checkout_session."""
        return await self._run(
            SessionFlow.PORTAL,
            auth_token,
            url=self.portal_url,
            payload=None,
            failure_message=PORTAL_FAILED_MESSAGE,
        )

    async def _run(
        self,
        flow: SessionFlow,
        auth_token: str | None,
        *,
        url: str,
        payload: dict[str, Any] | None,
        failure_message: str,
    ) -> str:
        if not auth_token:
            # Local precondition: stays IDLE, no request
            raise Unauthenticated(NOT_AUTHENTICATED_MESSAGE)

        log = logger.bind(flow=flow.value)
        self._transition(flow, SessionState.REQUESTING)
        log.info(f"{flow.value}_session_requesting")

        try:
            target = await self._request_session_url(url, auth_token, payload, failure_message)
        except EntitlementError as e:
            self._transition(flow, SessionState.FAILED)
            log.warning(f"{flow.value}_session_failed", error_code=e.code, error=e.message)
            raise
        except Exception:
            self._transition(flow, SessionState.FAILED)
            log.exception(f"{flow.value}_session_failed")
            raise

        self._transition(flow, SessionState.REDIRECTING)
        log.info(f"{flow.value}_session_redirecting")
        self.navigator.navigate(target)
        return target

    async def _request_session_url(
        self,
        url: str,
        auth_token: str,
        payload: dict[str, Any] | None,
        failure_message: str,
    ) -> str:
        headers = {"Authorization": f"Bearer {auth_token}"}
        try:
            if payload is None:
                response = await self._client.post(url, headers=headers)
            else:
                # json= sets Content-Type: application/json
                response = await self._client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise TransportFailure(f"{failure_message}: {e}") from e

        if not response.is_success:
            raise ServerRejected.from_response(response, failure_message)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(f"{failure_message}: response is not JSON") from e

        target = body.get("url") if isinstance(body, dict) else None
        if not isinstance(target, str) or not target:
            raise MalformedResponse(f"{failure_message}: response has no url")
        return target

    def _transition(self, flow: SessionFlow, state: SessionState) -> None:
        if self.on_transition is None:
            return
        try:
            self.on_transition(flow, state)
        except Exception:
            # Listener failures are logged, never propagated
            logger.exception(
                "session_transition_listener_failed", flow=flow.value, state=state.value
            )
