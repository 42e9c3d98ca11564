"""Entitlement snapshot models.

One snapshot shape covers both backend payloads: the trial-aware status and
the older plan-only status (whose trial fields and trial-era counters are
simply absent and take their defaults).
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PositiveInt, model_validator
from pydantic.alias_generators import to_camel

from entitlements.constants import (
    FREE_LEADS_PER_DAY,
    FREE_PROPERTIES,
    TRIAL_AI_SCORES_PER_DAY,
    TRIAL_DURATION_DAYS,
    TRIAL_RENTCAST_PER_DAY,
    UNLIMITED_THRESHOLD,
    UNLIMITED_WIRE_VALUE,
)


class Plan(str, Enum):
    """Plan reported by the backend."""

    FREE = "free"
    TRIAL = "trial"
    PRO = "pro"
    # Trial variant of the backend labels lapsed trials this way
    EXPIRED = "expired"


class AccountState(str, Enum):
    """Effective account state; exactly one applies to any snapshot."""

    PRO = "pro"
    TRIAL_ACTIVE = "trial_active"
    TRIAL_EXPIRED = "trial_expired"
    FREE = "free"


class UsageCounter(str, Enum):
    """Counted resources with a per-plan limit."""

    LEADS_TODAY = "leads_today"
    PROPERTIES = "properties"
    RENTCAST_TODAY = "rentcast_today"
    AI_SCORES_TODAY = "ai_scores_today"


# Counter → (current field, limit field) on Usage
COUNTER_FIELDS: dict[UsageCounter, tuple[str, str]] = {
    UsageCounter.LEADS_TODAY: ("leads_created_today", "leads_limit_per_day"),
    UsageCounter.PROPERTIES: ("total_properties", "properties_limit"),
    UsageCounter.RENTCAST_TODAY: ("rent_cast_requests_today", "rent_cast_limit_per_day"),
    UsageCounter.AI_SCORES_TODAY: ("ai_lead_scores_today", "ai_lead_scores_limit_per_day"),
}


def _normalise_limit(value: Any) -> Any:
    """Map every wire spelling of "unlimited" to None."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() == UNLIMITED_WIRE_VALUE:
        return None
    if isinstance(value, int) and not isinstance(value, bool) and value > UNLIMITED_THRESHOLD:
        return None
    return value


# None means unlimited
Limit = Annotated[PositiveInt | None, BeforeValidator(_normalise_limit)]
Count = Annotated[int, Field(ge=0)]

_WIRE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
)


class CounterReading(BaseModel):
    """A single counter's (current, limit) pair."""

    model_config = ConfigDict(frozen=True)

    counter: UsageCounter
    current: Count
    limit: Limit

    @property
    def is_unlimited(self) -> bool:
        return self.limit is None

    @property
    def is_at_limit(self) -> bool:
        return self.limit is not None and self.current >= self.limit


class Usage(BaseModel):
    """Usage counters and the messaging entitlement bit."""

    model_config = _WIRE_CONFIG

    leads_created_today: Count = 0
    leads_limit_per_day: Limit = FREE_LEADS_PER_DAY
    total_properties: Count = 0
    properties_limit: Limit = FREE_PROPERTIES
    rent_cast_requests_today: Count = 0
    rent_cast_limit_per_day: Limit = TRIAL_RENTCAST_PER_DAY
    ai_lead_scores_today: Count = 0
    ai_lead_scores_limit_per_day: Limit = TRIAL_AI_SCORES_PER_DAY
    messaging_allowed: bool = False

    def counter(self, name: UsageCounter) -> CounterReading:
        current_field, limit_field = COUNTER_FIELDS[UsageCounter(name)]
        return CounterReading(
            counter=name,
            current=getattr(self, current_field),
            limit=getattr(self, limit_field),
        )


class EntitlementSnapshot(BaseModel):
    """Server's view of a user's plan at a point in time. Immutable."""

    model_config = _WIRE_CONFIG

    plan: Plan
    has_active_subscription: bool
    subscription_override: bool
    is_in_trial: bool = False
    is_trial_expired: bool = False
    days_remaining: Count = 0
    trial_end_date: datetime | None = None
    current_period_end: datetime | None = None
    usage: Usage = Field(default_factory=Usage)

    @model_validator(mode="after")
    def _trial_flags_exclusive(self) -> "EntitlementSnapshot":
        if self.is_in_trial and self.is_trial_expired:
            raise ValueError("is_in_trial and is_trial_expired are mutually exclusive")
        return self

    @property
    def is_pro(self) -> bool:
        # Pro access never depends on usage values
        return self.has_active_subscription or self.subscription_override

    @property
    def account_state(self) -> AccountState:
        if self.is_pro:
            return AccountState.PRO
        if self.is_in_trial:
            return AccountState.TRIAL_ACTIVE
        if self.is_trial_expired:
            return AccountState.TRIAL_EXPIRED
        return AccountState.FREE


FallbackPolicy = Literal["free", "trial"]


def fallback_snapshot(policy: FallbackPolicy = "free") -> EntitlementSnapshot:
    """
    Canonical snapshot substituted when the status read fails.

    Usage is zeroed and limits are the free-tier ones, so nothing is
    unlimited during an outage. The "trial" policy additionally grants a
    fresh trial so the dashboard stays reachable.
    """
    usage = Usage()
    if policy == "trial":
        return EntitlementSnapshot(
            plan=Plan.TRIAL,
            has_active_subscription=False,
            subscription_override=False,
            is_in_trial=True,
            is_trial_expired=False,
            days_remaining=TRIAL_DURATION_DAYS,
            usage=usage,
        )
    return EntitlementSnapshot(
        plan=Plan.FREE,
        has_active_subscription=False,
        subscription_override=False,
        usage=usage,
    )
