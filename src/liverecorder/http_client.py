"""
HTTP client for Live Recorder.
Fetches playlists and segment payloads over a shared aiohttp session.
"""

import asyncio
from typing import Optional

import aiohttp

from .logger import get_logger


class FetchError(Exception):
    """A playlist or segment could not be fetched."""


class HttpClient:
    """
    Thin aiohttp wrapper used for manifests and segments.

    Features:
    - One shared ClientSession per client
    - Cache bypass on every manifest request
    - Uniform FetchError for status and network failures
    """

    NO_CACHE_HEADERS = {
        'Cache-Control': 'no-cache',
        'Pragma': 'no-cache',
    }

    def __init__(
        self,
        user_agent: str = "liverecorder",
        request_timeout: float = 15.0
    ):
        self.user_agent = user_agent
        self.request_timeout = request_timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._logger = get_logger('http')

    async def connect(self) -> None:
        """Open the underlying session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={'User-Agent': self.user_agent}
            )

    async def disconnect(self) -> None:
        """Close session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> 'HttpClient':
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise FetchError("HTTP client is not connected")
        return self._session

    async def fetch_text(self, url: str) -> str:
        """
        Fetch a manifest, bypassing any cache layer.

        Raises:
            FetchError: On non-2xx status, network error or timeout.
        """
        session = self._require_session()
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)

        try:
            async with session.get(url, headers=self.NO_CACHE_HEADERS, timeout=timeout) as resp:
                if resp.status >= 400:
                    raise FetchError(f"HTTP {resp.status} for {url}")
                return await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

    async def fetch_bytes(self, url: str, timeout: Optional[float] = None) -> bytes:
        """
        Fetch a segment payload.

        Raises:
            FetchError: On non-2xx status, network error or timeout.
        """
        session = self._require_session()
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.request_timeout)

        try:
            async with session.get(url, timeout=client_timeout) as resp:
                if resp.status >= 400:
                    raise FetchError(f"HTTP {resp.status} for {url}")
                return await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e
