"""Client for the download-count collection API.

The endpoint is not ours; this is the shape it is expected to have::

    GET  /addons                     -> 200, the known add-on names
    POST /addons/{name}              -> 200, body {"curseforge": url, "wowinterface": url}
    POST /addons/{name}/downloads    -> 200, body {"count": n}

Every request carries an ``api-token`` header and a JSON content type.
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from addon_fetcher.common.exceptions import (
    RemoteApiError,
    RequestTimeoutException,
    TransportException,
)
from addon_fetcher.common.request_manager import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)


def _addon_path(addon_name: str) -> str:
    return f"/addons/{quote(addon_name, safe='')}"


def _parse_addon_names(payload: Any) -> set[str] | None:
    """Pull names out of the list body, or None if the shape is unknown.

    Accepted shapes: ``["A", "B"]``, ``[{"name": "A"}, ...]`` and
    ``{"addons": <either of those>}``.
    """
    if isinstance(payload, dict) and "addons" in payload:
        payload = payload["addons"]
    if not isinstance(payload, list):
        return None

    names: set[str] = set()
    for item in payload:
        if isinstance(item, str):
            names.add(item)
        elif isinstance(item, dict) and isinstance(item.get("name"), str):
            names.add(item["name"])
        else:
            return None
    return names


class RemoteApiClient:
    """Thin async wrapper over the collection API.

    Example::

        async with RemoteApiClient("https://example.com/api", token) as api:
            if "GoldCounter" not in await api.list_addons():
                await api.create_addon("GoldCounter", urls)
            await api.update_downloads("GoldCounter", 1234)
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: float | None = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Root URL of the API; paths are appended to it.
            api_token: Value of the ``api-token`` header.
            timeout: Request timeout in seconds. None means no timeout.
            transport: Optional httpx transport, for tests.
        """
        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "api-token": api_token,
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RemoteApiClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> httpx.Response:
        url = str(self._client.base_url.join(path.lstrip("/")))
        logger.debug(f"{method} {url}")
        try:
            response = await self._client.request(
                method,
                path.lstrip("/"),
                content=json.dumps(payload) if payload is not None else None,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutException(
                url=url, timeout_seconds=self.timeout
            ) from e
        except httpx.TransportError as e:
            raise TransportException(
                url=url, reason=str(e) or type(e).__name__
            ) from e

        if response.status_code != 200:
            raise RemoteApiError(method, url, response.status_code, response.text)
        return response

    async def list_addons(self) -> set[str]:
        """Return the names the endpoint already knows.

        Raises:
            RemoteApiError: On a non-200 status or an unrecognised body.
            TransientException: On timeout or transport failure.
        """
        response = await self._request("GET", "/addons")
        try:
            names = _parse_addon_names(response.json())
        except json.JSONDecodeError:
            names = None
        if names is None:
            raise RemoteApiError(
                "GET",
                str(response.url),
                response.status_code,
                response.text,
                reason="unrecognised addon list body",
            )
        return names

    async def create_addon(
        self, addon_name: str, source_urls: dict[str, str]
    ) -> None:
        """Create the record for a new add-on with its source URLs."""
        await self._request("POST", _addon_path(addon_name), source_urls)

    async def update_downloads(self, addon_name: str, count: int) -> None:
        """Post the latest total download count for an add-on."""
        await self._request(
            "POST", f"{_addon_path(addon_name)}/downloads", {"count": count}
        )
