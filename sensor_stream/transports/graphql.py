"""GraphQL page fetcher - pulls historical readings over HTTP.

Issues the ``listSensorsData(limit, nextToken)`` query understood by the
dashboard backend and follows ``nextToken`` pagination.

Requires the ``graphql`` extra::

    pip install sensor-stream-core[graphql]
"""

from __future__ import annotations

import logging
from typing import Any

from sensor_stream.transports.base import Page, TransportFailure

__all__ = ["LIST_SENSORS_DATA", "GraphQLPager"]

logger = logging.getLogger("sensor_stream.transports.graphql")

try:
    import httpx

    HTTPX_AVAILABLE = True
except ImportError:
    HTTPX_AVAILABLE = False


LIST_SENSORS_DATA = """\
query ListSensorsData($limit: Int, $nextToken: String) {
  listSensorsData(limit: $limit, nextToken: $nextToken) {
    items {
      device_id
      timestamp
      temperature
      humidity
      battery_voltage
      move_count
      field_2
      received_at
    }
    nextToken
  }
}
"""


class GraphQLPager:
    """``fetch_page`` collaborator backed by an ``httpx.AsyncClient``.

    Parameters:
        url: GraphQL HTTP endpoint.
        api_key: Sent as the ``x-api-key`` header when given.
        limit: Page size requested from the backend.
        timeout_s: Per-request timeout in seconds.
        headers: Extra HTTP headers.
        client: Pre-built ``httpx.AsyncClient`` (the pager will not close it).
    """

    def __init__(
        self,
        *,
        url: str,
        api_key: str | None = None,
        limit: int = 1000,
        timeout_s: float = 30.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not HTTPX_AVAILABLE:
            raise ImportError(
                "httpx is required for GraphQLPager.  Install with: pip install sensor-stream-core[graphql]"
            )
        self._url = url
        self._limit = limit
        self._timeout = timeout_s
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        if api_key:
            self._headers["x-api-key"] = api_key
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> httpx.AsyncClient:
        """Open the HTTP client if needed and return it."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers=self._headers,
            )
            logger.info("GraphQLPager ready - endpoint: %s", self._url)
        return self._client

    async def __call__(self, token: str | None) -> Page:
        client = await self.connect()

        body = {
            "query": LIST_SENSORS_DATA,
            "variables": {"limit": self._limit, "nextToken": token},
        }
        try:
            resp = await client.post(self._url, json=body, headers=self._headers)
            resp.raise_for_status()
            payload: dict[str, Any] = resp.json()
        except httpx.HTTPError as exc:
            raise TransportFailure(f"listSensorsData request failed: {exc}") from exc
        except ValueError as exc:
            raise TransportFailure("listSensorsData returned invalid JSON") from exc

        if payload.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in payload["errors"])
            raise TransportFailure(f"listSensorsData returned errors: {messages}")

        listing = (payload.get("data") or {}).get("listSensorsData")
        if listing is None:
            raise TransportFailure("listSensorsData missing from response")

        page = Page(items=list(listing.get("items") or []), next_token=listing.get("nextToken"))
        logger.debug("Fetched %d records (next token: %s)", len(page.items), page.next_token)
        return page

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            logger.info("GraphQLPager closed")
        self._client = None
