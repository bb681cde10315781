"""
In-process event bus for watcher notifications.

Handlers subscribe to a named stream and receive each emitted payload.
Coroutine handlers are scheduled as tasks on the running loop, so emit()
never waits for a handler to finish. drain() awaits whatever is still
outstanding.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "session-completed"
SESSION_ACTIVITY = "session-activity"
RESCAN_PROGRESS = "rescan-progress"

Handler = Callable[[Any], Any]
Unsubscribe = Callable[[], None]


class EventBus:
    """Named publish/subscribe streams scoped to one event loop."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event_name: str, handler: Handler) -> Unsubscribe:
        """
        Register a handler for an event stream.

        Returns:
            Callable that removes the subscription. Calling it more than
            once is a no-op.
        """
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Subscribed to {event_name}")
        active = True

        def unsubscribe() -> None:
            nonlocal active
            if not active:
                return
            active = False
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                self._handlers.pop(event_name, None)
            logger.debug(f"Unsubscribed from {event_name}")

        return unsubscribe

    def subscriber_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    def emit(self, event_name: str, payload: Any = None) -> list[asyncio.Task]:
        """
        Deliver a payload to every current subscriber.

        A handler raising synchronously is logged and does not stop
        delivery to the remaining subscribers.

        Returns:
            Tasks created for coroutine handlers
        """
        tasks = []
        # Copy so handlers may unsubscribe during delivery
        for handler in list(self._handlers.get(event_name, [])):
            try:
                result = handler(payload)
            except Exception:
                logger.exception(f"Handler for {event_name} failed")
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._on_task_done)
                tasks.append(task)
        return tasks

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Event handler task failed", exc_info=exc)

    @property
    def pending(self) -> int:
        """Number of handler tasks still running."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every scheduled handler task has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
