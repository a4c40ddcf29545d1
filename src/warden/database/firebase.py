"""
Remote document store strategy.

Talks to a Firebase Realtime Database compatible REST endpoint: every key
maps to ``{base_url}/{key}.json`` and is read with GET, replaced with PUT and
removed with DELETE.
"""

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from warden.database.store import ConfigStore
from warden.errors import BackendUnavailable

logger = logging.getLogger(__name__)


class FirebaseConfigStore(ConfigStore):
    """
    ConfigStore backed by a remote JSON document tree over HTTP.

    The aiohttp session is created lazily on first use so the store can be
    built outside a running event loop.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    def url_for(self, key: str) -> str:
        """Build the document URL for a key, encoding each path segment."""
        segments = "/".join(quote(part, safe="") for part in key.split("/"))
        return f"{self._base_url}/{segments}.json"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def load(self, key: str) -> Any | None:
        url = self.url_for(key)
        try:
            async with self._get_session().get(url) as response:
                if response.status != 200:
                    raise BackendUnavailable(f"GET {key} returned HTTP {response.status}")
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise BackendUnavailable(f"GET {key} failed: {e}") from e

    async def set(self, key: str, value: Any) -> None:
        url = self.url_for(key)
        try:
            async with self._get_session().put(url, json=value) as response:
                if response.status >= 300:
                    raise BackendUnavailable(f"PUT {key} returned HTTP {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BackendUnavailable(f"PUT {key} failed: {e}") from e

    async def delete(self, key: str) -> None:
        url = self.url_for(key)
        try:
            async with self._get_session().delete(url) as response:
                if response.status >= 300:
                    raise BackendUnavailable(f"DELETE {key} returned HTTP {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BackendUnavailable(f"DELETE {key} failed: {e}") from e

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
