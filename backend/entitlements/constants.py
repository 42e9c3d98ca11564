"""
Business constants for the entitlement engine.

These values mirror the backend's plan definitions and do not need env-var
overrides. For operational parameters that vary per environment (base URL,
timeouts, fallback policy), see config.py.
"""

# --- Trial configuration ---
TRIAL_DURATION_DAYS = 60
TRIAL_LOW_DAYS_THRESHOLD = 7  # days_remaining <= 7 → "only N days left"

# --- Default per-plan limits ---
FREE_LEADS_PER_DAY = 20
FREE_PROPERTIES = 10
TRIAL_RENTCAST_PER_DAY = 3
TRIAL_AI_SCORES_PER_DAY = 50

# --- Unlimited sentinel ---
# The backend reports unlimited counters as int.MaxValue. Anything above the
# threshold is treated as unlimited.
UNLIMITED_SENTINEL = 2_147_483_647
UNLIMITED_THRESHOLD = 1_000_000
UNLIMITED_WIRE_VALUE = "unlimited"

# --- Usage meter ---
NEAR_LIMIT_PERCENTAGE = 80.0

# --- Backend endpoints (relative to Settings.api_base_url) ---
SUBSCRIPTION_STATUS_PATH = "/api/subscription/status"
CHECKOUT_SESSION_PATH = "/api/stripe/create-checkout-session"
PORTAL_SESSION_PATH = "/api/stripe/create-portal-session"

# --- User-facing messages ---
STATUS_UNAVAILABLE_MESSAGE = "Failed to load subscription status"
NOT_AUTHENTICATED_MESSAGE = "Not authenticated"
CHECKOUT_FAILED_MESSAGE = "Failed to create checkout session"
PORTAL_FAILED_MESSAGE = "Failed to open customer portal"
