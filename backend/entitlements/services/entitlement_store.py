"""
Entitlement store.

Owns the current snapshot and its loading/error flags, reacts to auth
transitions, and hands the current token to the session initiators. Consumers
get the store injected and either read it directly or subscribe to changes.

Ordering: every refresh takes a new generation number. A result is applied
only if its generation is higher than the last applied one, so a slow stale
response can never overwrite a fresher one. Logout (or a token switch) marks
every pending generation as stale.
"""

from collections.abc import Callable

import structlog
from pydantic import BaseModel, ConfigDict

from entitlements import gates as gate_rules
from entitlements.gates import Gates, TrialProgress, UsageMeter
from entitlements.models.entitlement import EntitlementSnapshot, UsageCounter
from entitlements.services.session_initiator import SessionInitiator
from entitlements.services.status_fetcher import StatusFetcher

logger = structlog.get_logger(__name__)


class StoreState(BaseModel):
    """Immutable view of the store handed to subscribers."""

    model_config = ConfigDict(frozen=True)

    snapshot: EntitlementSnapshot | None
    loading: bool
    error: str | None
    is_authenticated: bool
    generation: int


StoreListener = Callable[[StoreState], None]


class EntitlementStore:
    """Single owner of the entitlement snapshot for one client session."""

    def __init__(self, fetcher: StatusFetcher, initiator: SessionInitiator) -> None:
        self.fetcher = fetcher
        self.initiator = initiator
        self._token: str | None = None
        self._snapshot: EntitlementSnapshot | None = None
        self._loading = False
        self._error: str | None = None
        self._generation = 0
        self._applied_generation = 0
        self._pending: set[int] = set()
        self._listeners: list[StoreListener] = []

    # --- read access -------------------------------------------------------

    @property
    def snapshot(self) -> EntitlementSnapshot | None:
        return self._snapshot

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def state(self) -> StoreState:
        return StoreState(
            snapshot=self._snapshot,
            loading=self._loading,
            error=self._error,
            is_authenticated=self.is_authenticated,
            generation=self._generation,
        )

    @property
    def gates(self) -> Gates:
        # Computed from whatever snapshot is current at read time
        return gate_rules.evaluate(self._snapshot)

    def can_consume(self, counter: UsageCounter) -> bool:
        return gate_rules.can_consume(counter, self._snapshot)

    def usage_meter(self, counter: UsageCounter) -> UsageMeter | None:
        return gate_rules.usage_meter(counter, self._snapshot)

    def usage_warnings(self) -> list[UsageMeter]:
        return gate_rules.usage_warnings(self._snapshot)

    @property
    def trial_progress(self) -> TrialProgress | None:
        return gate_rules.trial_progress(self._snapshot)

    # --- subscriptions -----------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register ``listener`` for state changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("entitlement_listener_failed", listener=repr(listener))

    # --- auth transitions --------------------------------------------------

    async def set_token(self, token: str | None) -> None:
        """React to the auth token changing: fetch on sign-in, clear on sign-out."""
        if not token:
            self.logout()
            return
        if token == self._token and self._snapshot is not None:
            return
        switched = self._token is not None and token != self._token
        self._token = token
        if switched:
            # Nothing from the previous identity may stay visible or land later
            self._invalidate_pending()
            self._snapshot = None
            self._error = None
            self._loading = False
            logger.info("entitlements_cleared_on_token_switch", generation=self._generation)
            self._notify()
        await self.refresh()

    async def login(self, token: str) -> None:
        await self.set_token(token)

    def logout(self) -> None:
        """Synchronously drop to the unauthenticated state and discard pending reads."""
        was_authenticated = self._token is not None
        self._token = None
        self._invalidate_pending()
        self._snapshot = None
        self._error = None
        self._loading = False
        if was_authenticated:
            logger.info("entitlements_cleared_on_logout", generation=self._generation)
        self._notify()

    def _invalidate_pending(self) -> None:
        self._generation += 1
        self._applied_generation = self._generation

    # --- refresh -----------------------------------------------------------

    async def refresh(self) -> None:
        """
        Re-fetch the snapshot for the current token.

        Safe to call repeatedly and concurrently; the result of the highest
        generation that has resolved is what the store shows.
        """
        token = self._token
        if not token:
            self.logout()
            return

        self._generation += 1
        generation = self._generation
        self._pending.add(generation)
        self._loading = True
        self._notify()

        applied = False
        try:
            result = await self.fetcher.fetch(token, generation=generation)
            if generation > self._applied_generation:
                self._applied_generation = generation
                self._snapshot = result.snapshot
                self._error = result.error_message
                applied = True
            else:
                logger.info(
                    "subscription_status_discarded",
                    generation=generation,
                    applied_generation=self._applied_generation,
                )
        finally:
            # Also runs on cancellation so loading never sticks
            self._pending.discard(generation)
            loading = any(g > self._applied_generation for g in self._pending)
            if applied or loading != self._loading:
                self._loading = loading
                self._notify()

    # --- session flows -----------------------------------------------------

    async def create_checkout_session(self) -> str:
        """Checkout for the signed-in user. See SessionInitiator.create_checkout_session."""
        return await self.initiator.create_checkout_session(self._token)

    async def open_customer_portal(self) -> str:
        """Billing portal for the signed-in user. See SessionInitiator.open_customer_portal."""
        return await self.initiator.open_customer_portal(self._token)
