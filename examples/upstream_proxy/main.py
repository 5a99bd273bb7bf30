#!/usr/bin/env python3
"""
Upstream Proxy

Serializes PATCH calls to an upstream visit-record API, one lane per user.
Requests for the same user never overlap and are spaced by a delay; requests
for different users run side by side.

Set UPSTREAM_URL to hit a real API. Without it, an in-process mock upstream
(httpx.MockTransport) answers and records call order.

Demonstrates:
- Dynamic key registration (one key per user id)
- Pacing with processing_delay_ms
- QueueFullError as backpressure
- Reading status() and config_summary()
"""

import asyncio
import json
import os

import httpx

from lanequeue import QueueFullError, TaskQueue

UPSTREAM_URL = os.environ.get("UPSTREAM_URL", "https://upstream.invalid/api/admin/voter/visitRecord")
UPSTREAM_TOKEN = os.environ.get("UPSTREAM_TOKEN", "demo-token")

USER_QUEUE_CONFIG = {
    "processing_delay_ms": 200,
    "max_queue_size": 5,
    "timeout_ms": 5000,
}


def mock_upstream() -> httpx.MockTransport:
    """Fake upstream that echoes the PATCH body back."""

    def handler(request: httpx.Request) -> httpx.Response:
        user_id = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content)
        print(f"  upstream <- PATCH user {user_id}: {body['description']}", flush=True)
        return httpx.Response(200, json={"id": user_id, "updated": True})

    return httpx.MockTransport(handler)


def main():
    transport = None if "UPSTREAM_URL" in os.environ else mock_upstream()

    async def run():
        queue = TaskQueue()

        async with httpx.AsyncClient(transport=transport, timeout=10) as client:

            def user_processor(user_id: str):
                async def patch_visit_record(payload):
                    resp = await client.patch(
                        f"{UPSTREAM_URL}/{user_id}",
                        headers={"Authorization": f"Bearer {UPSTREAM_TOKEN}"},
                        json={"description": json.dumps(payload)},
                    )
                    resp.raise_for_status()
                    return resp.json()
                return patch_visit_record

            async def handle_request(user_id: str, body: dict):
                """What an HTTP handler would do for POST /api/user/{id}."""
                key = f"user-api:{user_id}"
                try:
                    result = await queue.enqueue(key, body, user_processor(user_id), USER_QUEUE_CONFIG)
                except QueueFullError as e:
                    return 429, {"error": str(e)}
                except Exception as e:
                    return 502, {"error": "upstream call failed", "message": str(e)}
                return 200, result

            requests = [
                ("1", {"visit": n}) for n in range(3)
            ] + [
                ("2", {"visit": n}) for n in range(8)
            ]
            responses = await asyncio.gather(*(handle_request(uid, body) for uid, body in requests))

            for (uid, body), (status, payload) in zip(requests, responses):
                print(f"user {uid} {body} -> {status} {payload}")

            print("\nQueue status:")
            for key, snapshot in queue.status().items():
                print(f"  {key}: {snapshot['stats']}")
            print("\nQueue config:")
            print(json.dumps(queue.config_summary(), indent=2))

            await queue.stop()

    asyncio.run(run())


if __name__ == "__main__":
    main()
