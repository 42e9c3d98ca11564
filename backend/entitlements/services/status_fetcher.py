"""
Subscription status reader.

Performs the authenticated read of the entitlement snapshot and owns the
fallback-on-error policy: any failure is logged and turned into the canonical
fallback snapshot plus an error flag, never into an exception.

Usage:
    fetcher = StatusFetcher(client, base_url="https://api.example.com")
    result = await fetcher.fetch(token)
    # result.snapshot is None          → unauthenticated (no token)
    # result.error is not None         → fallback snapshot, show "status unavailable"
"""

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

from entitlements.constants import STATUS_UNAVAILABLE_MESSAGE, SUBSCRIPTION_STATUS_PATH
from entitlements.errors import (
    EntitlementError,
    MalformedResponse,
    ServerRejected,
    TransportFailure,
)
from entitlements.models.entitlement import (
    EntitlementSnapshot,
    FallbackPolicy,
    fallback_snapshot,
)

logger = structlog.get_logger(__name__)


class FetchResult(BaseModel):
    """Outcome of one status read."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    snapshot: EntitlementSnapshot | None = None
    error: EntitlementError | None = None

    @property
    def is_fallback(self) -> bool:
        return self.error is not None

    @property
    def error_message(self) -> str | None:
        return STATUS_UNAVAILABLE_MESSAGE if self.error is not None else None


class StatusFetcher:
    """Reads ``GET /api/subscription/status`` for the bearer of a token."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        fallback_policy: FallbackPolicy = "free",
    ) -> None:
        self._client = client
        self.status_url = f"{base_url.rstrip('/')}{SUBSCRIPTION_STATUS_PATH}"
        self.fallback_policy = fallback_policy

    async def fetch(self, auth_token: str | None, *, generation: int | None = None) -> FetchResult:
        """
        Fetch the current snapshot.

        Args:
            auth_token: Bearer token, or None when signed out.
            generation: Store generation of this read, bound into the logs.

        Returns:
            FetchResult with no snapshot (no token), the server snapshot, or the
            fallback snapshot together with the error that caused it.
        """
        if not auth_token:
            return FetchResult()

        log = logger.bind(generation=generation)
        try:
            snapshot = await self._read_status(auth_token)
        except EntitlementError as e:
            log.warning(
                "subscription_status_fetch_failed",
                error_code=e.code,
                error=e.message,
                fallback_policy=self.fallback_policy,
            )
            return FetchResult(snapshot=fallback_snapshot(self.fallback_policy), error=e)
        except Exception as e:
            log.exception("subscription_status_fetch_unexpected_error", error=str(e))
            return FetchResult(
                snapshot=fallback_snapshot(self.fallback_policy),
                error=TransportFailure(str(e) or STATUS_UNAVAILABLE_MESSAGE),
            )

        log.info(
            "subscription_status_fetched",
            plan=snapshot.plan.value,
            account_state=snapshot.account_state.value,
        )
        return FetchResult(snapshot=snapshot)

    async def _read_status(self, auth_token: str) -> EntitlementSnapshot:
        """
        Perform the HTTP read and validate the body.

        Raises:
            TransportFailure:  Network error or timeout.
            ServerRejected:    Non-2xx response.
            MalformedResponse: Body is not JSON or not a valid snapshot.
        """
        try:
            response = await self._client.get(
                self.status_url,
                headers={"Authorization": f"Bearer {auth_token}"},
            )
        except httpx.TimeoutException as e:
            raise TransportFailure(f"Subscription status request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"Subscription status request failed: {e}") from e

        if not response.is_success:
            raise ServerRejected.from_response(response, STATUS_UNAVAILABLE_MESSAGE)

        try:
            return EntitlementSnapshot.model_validate(response.json())
        except ValueError as e:
            # Covers both JSON decoding and pydantic validation errors
            raise MalformedResponse(
                "Subscription status response is malformed",
                details={"reason": str(e)},
            ) from e
