#!/usr/bin/env python3
"""GraphQLPager example -- backfill history from the dashboard's
``listSensorsData`` endpoint.

Requires: ``pip install sensor-stream-core[graphql]``

Usage::

    python examples/transports/graphql_backfill_example.py \\
        --url https://xxxx.appsync-api.us-east-1.amazonaws.com/graphql \\
        --api-key da2-xxxxxxxx

    python examples/transports/graphql_backfill_example.py --demo   # offline, mocked backend
"""

from __future__ import annotations

import argparse
import asyncio
import json


def _demo_client():
    """httpx client whose transport serves two pages locally."""
    import httpx

    pages = {
        None: {"items": [{"device_id": "demo", "timestamp": str(i), "temperature": 31.0} for i in range(3)],
               "nextToken": "page-2"},
        "page-2": {"items": [{"device_id": "demo", "timestamp": str(i), "temperature": 18.0} for i in range(3, 5)],
                   "nextToken": None},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        token = json.loads(request.content)["variables"]["nextToken"]
        return httpx.Response(200, json={"data": {"listSensorsData": pages[token]}})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def run(url: str, api_key: str | None, limit: int, demo: bool) -> None:
    from sensor_stream import StreamCoordinator
    from sensor_stream.transports import ManualFeed
    from sensor_stream.transports.graphql import GraphQLPager

    pager = GraphQLPager(url=url, api_key=api_key, limit=limit, client=_demo_client() if demo else None)
    core = StreamCoordinator(pager, ManualFeed())

    try:
        async with core:
            await core.start()
            status = core.status()
            print(f"  state={status.state.value} pages={status.pages_fetched} readings={status.readings_accepted}")
            if status.last_error:
                print(f"  error: {status.last_error}")
            for device in sorted(core.get_devices()):
                snap = core.get_snapshot(device)
                print(f"  {device:<20s} n={snap.reading_count:<6d} mean temp={snap.mean_temperature:.2f}")
    finally:
        await pager.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="GraphQLPager example")
    parser.add_argument("--url", default="https://example.invalid/graphql", help="GraphQL endpoint")
    parser.add_argument("--api-key", default=None, help="x-api-key header value")
    parser.add_argument("--limit", type=int, default=1000, help="Page size")
    parser.add_argument("--demo", action="store_true", help="Serve pages from a local mock transport")
    args = parser.parse_args()

    print("=== GraphQLPager backfill ===\n")
    asyncio.run(run(args.url, args.api_key, args.limit, args.demo))


if __name__ == "__main__":
    main()
