"""
services/fetch_service.py – Thin async HTTP GET wrapper (text / bytes / JSON).

All backend and CDN reads go through one shared httpx.AsyncClient so that a
run keeps a single connection pool.  Transport failures and non-2xx statuses
are raised as FetchError; callers decide whether that is fatal.
"""

import json
import logging
from typing import Any, Optional

import httpx

from services.exceptions import FetchError

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

CONNECT_TIMEOUT: float = 30.0
READ_TIMEOUT: float = 60.0
USER_AGENT: str = "riftgrab/1.0"


def create_client(**kwargs: Any) -> httpx.AsyncClient:
    """Build the shared AsyncClient used for a whole run."""
    kwargs.setdefault(
        "timeout",
        httpx.Timeout(connect=CONNECT_TIMEOUT, read=READ_TIMEOUT, write=None, pool=None),
    )
    kwargs.setdefault("follow_redirects", True)
    kwargs.setdefault("headers", {"User-Agent": USER_AGENT})
    return httpx.AsyncClient(**kwargs)


class UrlFetcher:
    """GET helper bound to a shared client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Server returned HTTP {exc.response.status_code} for URL: {url}"
            ) from exc
        except httpx.RequestError as exc:
            raise FetchError(f"Network error while fetching {url}: {exc}") from exc
        return response

    async def get_text(self, url: str) -> str:
        logger.debug("Getting content from URL: %s", url)
        response = await self._get(url)
        return response.text

    async def get_bytes(self, url: str) -> bytes:
        response = await self._get(url)
        return response.content

    async def get_json(self, url: str) -> Any:
        """
        Fetch *url* and decode it as JSON.

        Raises
        ------
        FetchError on transport failure or when the body is not valid JSON.
        """
        response = await self._get(url)
        try:
            return json.loads(response.text)
        except ValueError as exc:
            raise FetchError(f"Invalid JSON returned by {url}: {exc}") from exc

    async def try_get_json(self, url: str) -> Optional[Any]:
        """Like get_json(), but logs the failure and returns None instead."""
        try:
            return await self.get_json(url)
        except FetchError as exc:
            logger.error("%s", exc)
            return None
