"""
Capability gates derived from an entitlement snapshot.

Every function here is pure and total: it accepts ``None`` (no snapshot, i.e.
unauthenticated) and answers with the most restrictive value in that case.

Usage:
    gates = evaluate(snapshot)
    if not gates.can_create_lead:
        show_upgrade_banner(usage_warnings(snapshot))
"""

from pydantic import BaseModel, ConfigDict

from entitlements.constants import (
    NEAR_LIMIT_PERCENTAGE,
    TRIAL_DURATION_DAYS,
    TRIAL_LOW_DAYS_THRESHOLD,
)
from entitlements.models.entitlement import AccountState, EntitlementSnapshot, UsageCounter


class Gates(BaseModel):
    """Every gate for one snapshot, evaluated together."""

    model_config = ConfigDict(frozen=True)

    is_authenticated: bool
    is_pro: bool
    is_in_trial: bool
    is_trial_expired: bool
    can_access_app: bool
    can_create_lead: bool
    can_create_property: bool
    can_use_rentcast: bool
    can_score_with_ai: bool
    can_access_messaging: bool
    days_remaining: int
    account_state: AccountState | None


class UsageMeter(BaseModel):
    """Display data for a usage meter / limit banner."""

    model_config = ConfigDict(frozen=True)

    counter: UsageCounter
    current: int
    limit: int | None
    is_unlimited: bool
    percentage: float
    is_at_limit: bool
    is_near_limit: bool

    @property
    def display_percentage(self) -> float:
        """Percentage clamped for a progress bar."""
        return min(self.percentage, 100.0)


class TrialProgress(BaseModel):
    """Display data for the trial countdown banner."""

    model_config = ConfigDict(frozen=True)

    days_remaining: int
    is_low_days: bool
    percentage_used: float


def is_pro(snapshot: EntitlementSnapshot | None) -> bool:
    return snapshot is not None and snapshot.is_pro


def is_in_trial(snapshot: EntitlementSnapshot | None) -> bool:
    return snapshot is not None and snapshot.is_in_trial


def is_trial_expired(snapshot: EntitlementSnapshot | None) -> bool:
    return snapshot is not None and snapshot.is_trial_expired


def can_access_app(snapshot: EntitlementSnapshot | None) -> bool:
    return is_pro(snapshot) or is_in_trial(snapshot)


def can_consume(counter: UsageCounter, snapshot: EntitlementSnapshot | None) -> bool:
    """True when one more unit of ``counter`` is permitted.

    Pro accounts bypass every counter, even ones already past the nominal
    free-tier limit.
    """
    if snapshot is None:
        return False
    if snapshot.is_pro:
        return True
    reading = snapshot.usage.counter(counter)
    if reading.is_unlimited:
        return True
    return reading.current < reading.limit


def can_access_messaging(snapshot: EntitlementSnapshot | None) -> bool:
    # Entitlement bit, not derived from pro status (e.g. phone number pending)
    return snapshot is not None and snapshot.usage.messaging_allowed


def can_create_lead(snapshot: EntitlementSnapshot | None) -> bool:
    return can_consume(UsageCounter.LEADS_TODAY, snapshot)


def can_create_property(snapshot: EntitlementSnapshot | None) -> bool:
    return can_consume(UsageCounter.PROPERTIES, snapshot)


def can_use_rentcast(snapshot: EntitlementSnapshot | None) -> bool:
    return can_consume(UsageCounter.RENTCAST_TODAY, snapshot)


def can_score_with_ai(snapshot: EntitlementSnapshot | None) -> bool:
    return can_consume(UsageCounter.AI_SCORES_TODAY, snapshot)


def days_remaining(snapshot: EntitlementSnapshot | None) -> int:
    if not is_in_trial(snapshot):
        return 0
    return snapshot.days_remaining


def account_state(snapshot: EntitlementSnapshot | None) -> AccountState | None:
    return snapshot.account_state if snapshot is not None else None


def evaluate(snapshot: EntitlementSnapshot | None) -> Gates:
    """Evaluate every gate for ``snapshot`` at once."""
    return Gates(
        is_authenticated=snapshot is not None,
        is_pro=is_pro(snapshot),
        is_in_trial=is_in_trial(snapshot),
        is_trial_expired=is_trial_expired(snapshot),
        can_access_app=can_access_app(snapshot),
        can_create_lead=can_create_lead(snapshot),
        can_create_property=can_create_property(snapshot),
        can_use_rentcast=can_use_rentcast(snapshot),
        can_score_with_ai=can_score_with_ai(snapshot),
        can_access_messaging=can_access_messaging(snapshot),
        days_remaining=days_remaining(snapshot),
        account_state=account_state(snapshot),
    )


def usage_meter(counter: UsageCounter, snapshot: EntitlementSnapshot | None) -> UsageMeter | None:
    """
    Build meter data for one counter.

    Args:
        counter:  Counter to read.
        snapshot: Current snapshot, or None when unauthenticated.

    Returns:
        UsageMeter, or None when there is no snapshot to read from.
    """
    if snapshot is None:
        return None

    reading = snapshot.usage.counter(counter)
    if reading.is_unlimited:
        percentage = 0.0
    else:
        percentage = reading.current / reading.limit * 100

    return UsageMeter(
        counter=reading.counter,
        current=reading.current,
        limit=reading.limit,
        is_unlimited=reading.is_unlimited,
        percentage=percentage,
        is_at_limit=reading.is_at_limit,
        is_near_limit=not reading.is_unlimited and percentage >= NEAR_LIMIT_PERCENTAGE,
    )


def usage_warnings(snapshot: EntitlementSnapshot | None) -> list[UsageMeter]:
    """Meters at or near their limit, for non-pro accounts only."""
    if snapshot is None or snapshot.is_pro:
        return []

    warnings: list[UsageMeter] = []
    for counter in UsageCounter:
        meter = usage_meter(counter, snapshot)
        if meter is not None and meter.is_near_limit:
            warnings.append(meter)
    return warnings


def trial_progress(snapshot: EntitlementSnapshot | None) -> TrialProgress | None:
    """Countdown data while a trial is active, otherwise None."""
    if not is_in_trial(snapshot):
        return None

    remaining = snapshot.days_remaining
    used = max(0, TRIAL_DURATION_DAYS - remaining)
    return TrialProgress(
        days_remaining=remaining,
        is_low_days=remaining <= TRIAL_LOW_DAYS_THRESHOLD,
        percentage_used=min(100.0, used / TRIAL_DURATION_DAYS * 100),
    )
