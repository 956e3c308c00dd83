from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Set


class EventBus:
    """In-process pub/sub bus for file audit events."""

    def __init__(self, max_history: int = 100, max_queue: int = 1000):
        self._subscribers: Set[asyncio.Queue] = set()
        self._history: Deque[dict] = deque(maxlen=max_history)
        self._max_queue = max_queue
        self._lock = asyncio.Lock()

    async def subscribe(self) -> asyncio.Queue:
        """Subscribe to events, returns a queue for receiving."""
        queue = asyncio.Queue(maxsize=self._max_queue)
        async with self._lock:
            self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        async with self._lock:
            self._subscribers.discard(queue)

    async def publish(self, event_type: str, data: dict) -> None:
        """Publish an event to all subscribers and keep it in history."""
        event = {
            "type": event_type,
            "data": data,
            "timestamp": time.time(),
        }
        self._history.append(event)

        async with self._lock:
            for queue in self._subscribers:
                try:
                    queue.put_nowait(event)
                except asyncio.QueueFull:
                    pass  # slow subscriber

    def get_recent(self, count: int = 20, event_type: Optional[str] = None) -> list:
        """Recent events from history, optionally of one type."""
        events = list(self._history)
        if event_type:
            events = [e for e in events if e["type"] == event_type]
        return events[-count:]


def build_emitter(event_bus: EventBus) -> Callable[..., Awaitable[None]]:
    async def emit_event(event_type: str, message: str, **kwargs: Any) -> None:
        data: Dict[str, Any] = {"message": message, **kwargs}
        await event_bus.publish(event_type, data)

    return emit_event


__all__ = ["EventBus", "build_emitter"]
