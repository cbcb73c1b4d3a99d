from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeAlias

EventPayload: TypeAlias = Dict[str, Any]
EventHandler: TypeAlias = Callable[[EventPayload], Awaitable[None]]


class EventBus:
    """Pub/sub hub between the graph engine and its host application.

    Handlers are coroutines dispatched as tasks on the running loop, so a
    publisher never waits for (or fails because of) a subscriber.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventHandler]] = defaultdict(list)
        # Created lazily so the lock binds to whichever loop first uses it
        self._lock: Optional[asyncio.Lock] = None
        self._loop_id: Optional[int] = None
        self._pending: set[asyncio.Task[None]] = set()
        self._logger = logging.getLogger(__name__)

    def _ensure_lock(self) -> asyncio.Lock:
        """Get or create the lock for the current event loop."""
        try:
            loop_id = id(asyncio.get_running_loop())
            if self._loop_id is not None and self._loop_id != loop_id:
                self._lock = None
            if self._lock is None:
                self._lock = asyncio.Lock()
                self._loop_id = loop_id
        except RuntimeError:
            if self._lock is None:
                self._lock = asyncio.Lock()
        return self._lock

    async def subscribe(self, topic: str, handler: EventHandler) -> None:
        """Register an async handler for a topic."""
        async with self._ensure_lock():
            if handler not in self._subscribers[topic]:
                self._subscribers[topic].append(handler)

    async def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        """Remove a handler from a topic."""
        async with self._ensure_lock():
            if handler in self._subscribers.get(topic, []):
                self._subscribers[topic].remove(handler)

    async def publish(self, topic: str, payload: EventPayload) -> None:
        """Publish an event to all subscribers."""
        async with self._ensure_lock():
            handlers = list(self._subscribers.get(topic, []))
        self._dispatch(topic, handlers, payload)

    def publish_nowait(self, topic: str, payload: EventPayload) -> None:
        """Publish from synchronous code running on the event loop.

        Interaction handlers (select, hover, drag) are plain functions; they
        call this to fan out without awaiting. Outside a running loop the
        event has nowhere to go and is dropped with a debug log.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._logger.debug(f"No running loop, dropping event '{topic}'")
            return
        self._dispatch(topic, list(self._subscribers.get(topic, [])), payload)

    def _dispatch(self, topic: str, handlers: List[EventHandler], payload: EventPayload) -> None:
        if not handlers:
            # Informational topics (graph.rebuilt, view.updated) often have no listener
            self._logger.debug(f"No subscribers for topic '{topic}'")
            return

        self._logger.debug(f"Publishing to topic '{topic}' with {len(handlers)} handler(s)")
        for handler in handlers:
            task = asyncio.create_task(self._safe_dispatch(topic, handler, payload))
            # Keep a reference until done so the task is not garbage collected
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _safe_dispatch(
        self,
        topic: str,
        handler: EventHandler,
        payload: EventPayload,
    ) -> None:
        """Dispatch wrapper to keep one handler failure from stopping the bus."""
        handler_name = getattr(handler, "__name__", str(handler))
        try:
            await handler(payload)
        except Exception as exc:
            self._logger.exception(
                f"EventBus handler error in '{handler_name}' for topic '{topic}'",
                exc_info=exc,
            )

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._subscribers.clear()
