import logging
from typing import Optional

import httpx

from feedreader.core.config import settings
from feedreader.core.exceptions import FetchError

logger = logging.getLogger(__name__)


class Fetcher:
    """
    Retrieves raw feed payloads over HTTP.

    No retries happen here: a failed fetch is reported as FetchError and the
    scheduler tries again on its next cycle.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self.user_agent = user_agent or settings.FETCH_USER_AGENT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    async def fetch(self, url: str) -> bytes:
        """
        Fetch url and return the response body.

        Raises:
            FetchError: status_code set for non-success responses, None for
                        network/transport failures
        """
        client = self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            reason = e.response.reason_phrase or str(status_code)
            raise FetchError(url, f"HTTP {status_code}: {reason}", status_code=status_code) from e
        except httpx.RequestError as e:
            raise FetchError(url, f"Network error: {type(e).__name__}: {e}") from e

        logger.debug(f"Fetched {len(response.content)} bytes from {url[:80]}")
        return response.content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()
