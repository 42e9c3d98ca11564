"""
Entitlement & usage-limit engine for the acquisitions dashboard.

Loads the signed-in user's plan/trial/usage snapshot from the backend API,
derives capability gates from it, and starts the payment-provider checkout
and billing-portal flows.
"""
