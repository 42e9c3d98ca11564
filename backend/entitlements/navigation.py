"""Navigation side effect used by the session initiators."""

import webbrowser
from typing import Protocol
from urllib.parse import urlparse

import structlog

logger = structlog.get_logger(__name__)


class Navigator(Protocol):
    """Performs a full navigation of the browsing context to ``url``."""

    def navigate(self, url: str) -> None:
        """Leave the dashboard for ``url``."""


class WebBrowserNavigator:
    """Opens payment-provider pages in the user's default browser."""

    def navigate(self, url: str) -> None:
        logger.info("navigating_to_external_url", host=_host(url))
        webbrowser.open(url)


class RecordingNavigator:
    """Keeps every navigation in order; ``current_url`` is the last one (last write wins)."""

    def __init__(self) -> None:
        self.history: list[str] = []

    @property
    def current_url(self) -> str | None:
        return self.history[-1] if self.history else None

    def navigate(self, url: str) -> None:
        self.history.append(url)


def _host(url: str) -> str:
    # Session URLs carry one-time ids; only the host goes to the logs
    return urlparse(url).netloc
