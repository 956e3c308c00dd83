from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse


def create_router(event_bus) -> APIRouter:
    router = APIRouter()

    @router.get("/api/events")
    async def api_events():
        """SSE stream of file audit events."""

        async def generate():
            queue = await event_bus.subscribe()
            try:
                yield {
                    "event": "system",
                    "data": json.dumps({"message": "Connected to event stream"}),
                }

                while True:
                    try:
                        # Keepalive every 30s
                        event = await asyncio.wait_for(queue.get(), timeout=30.0)
                        yield {
                            "event": event["type"],
                            "data": json.dumps(event["data"], default=str),
                        }
                    except asyncio.TimeoutError:
                        yield {"event": "ping", "data": "{}"}

            finally:
                await event_bus.unsubscribe(queue)

        return EventSourceResponse(generate())

    @router.get("/api/events/recent")
    async def api_recent_events(count: int = 20, event_type: str | None = None):
        """Recent events from history (polling fallback)."""
        return {"events": event_bus.get_recent(count, event_type)}

    return router


__all__ = ["create_router"]
