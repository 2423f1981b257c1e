"""HTTP page client for fetching registry pages."""

from __future__ import annotations

import httpx

from botsync.core.errors import FetchError
from botsync.core.logging import get_logger

logger = get_logger(__name__)


class HttpxPageClient:
    """
    Downloads pages with httpx.

    Any transport or HTTP status failure surfaces as
    :class:`~botsync.core.errors.FetchError` with the URL in its context.
    """

    TIMEOUT = 30

    def __init__(self, timeout: float | None = None, headers: dict[str, str] | None = None):
        self.timeout = timeout or self.TIMEOUT
        self.headers = headers or {}

    def get_content(self, url: str) -> str:
        """GET *url* and return the response body as text."""
        logger.debug("page_fetch", url=url)
        try:
            with httpx.Client(timeout=self.timeout, headers=self.headers, follow_redirects=True) as client:
                response = client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch {url}: {exc}", cause=exc).with_context(url=url) from exc


__all__ = ["HttpxPageClient"]
