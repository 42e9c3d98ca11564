"""
Error taxonomy for the entitlement engine.

Status reads never raise these past the fetcher: they are absorbed into the
fallback snapshot and surfaced as an error flag. Session flows raise them to
the caller so the UI can tell the user the requested action failed.
"""

from typing import Any

import httpx


class EntitlementError(Exception):
    """Base error with a stable code and a human-readable message."""

    code = "ENTITLEMENT_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class Unauthenticated(EntitlementError):
    """No auth token available; no request was sent."""

    code = "UNAUTHENTICATED"


class TransportFailure(EntitlementError):
    """Network error or timeout talking to the backend."""

    code = "TRANSPORT_FAILURE"


class ServerRejected(EntitlementError):
    """Backend answered with a non-2xx status."""

    code = "SERVER_REJECTED"

    def __init__(
        self,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code

    @classmethod
    def from_response(cls, response: httpx.Response, default_message: str) -> "ServerRejected":
        """Build from a non-2xx response, preferring the backend's ``error`` field."""
        message = default_message
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
            message = body["error"]
        return cls(message, status_code=response.status_code)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["error"]["status_code"] = self.status_code
        return payload


class MalformedResponse(EntitlementError):
    """Response body does not have the expected shape."""

    code = "MALFORMED_RESPONSE"
