"""Request manager for fetching source pages.

AsyncRequestManager encapsulates the HTTP client and turns every way a fetch
can go wrong into a TransientException subclass, so the driver has a single
per-request error channel instead of an unhandled failure tearing down the
whole run.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from addon_fetcher import __version__
from addon_fetcher.common.exceptions import (
    HTMLResponseAssumptionException,
    RequestTimeoutException,
    TransportException,
)
from addon_fetcher.data_types import Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = f"addon-download-count-fetcher/{__version__}"


class AsyncRequestManager:
    """Manages HTTP requests for the asynchronous driver.

    This class encapsulates:

    - httpx.AsyncClient lifecycle
    - Page fetching with a 200-only success rule
    - Response transformation

    Example::

        async with AsyncRequestManager(timeout=10.0) as manager:
            response = await manager.fetch(url)
    """

    def __init__(
        self,
        timeout: float | None = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the request manager.

        Args:
            timeout: Request timeout in seconds. None means no timeout.
            client: Optional pre-built client (tests use this to mount a
                mock transport). The manager still closes it.
        """
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncRequestManager:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def fetch(self, url: str) -> Response:
        """GET a page and return its Response.

        Args:
            url: Absolute URL of the page.

        Returns:
            Response for a 200 reply.

        Raises:
            HTMLResponseAssumptionException: If the status is anything but 200.
            RequestTimeoutException: If the request times out.
            TransportException: If the request fails below HTTP.
        """
        logger.debug(f"GET {url}")
        try:
            http_response = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise RequestTimeoutException(
                url=url, timeout_seconds=self.timeout
            ) from e
        except httpx.TransportError as e:
            raise TransportException(
                url=url, reason=str(e) or type(e).__name__
            ) from e

        if http_response.status_code != 200:
            raise HTMLResponseAssumptionException(
                status_code=http_response.status_code,
                expected_codes=[200],
                url=url,
            )

        return Response(
            status_code=http_response.status_code,
            headers=dict(http_response.headers),
            text=http_response.text,
            url=url,
        )
