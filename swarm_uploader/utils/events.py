from typing import Callable, Dict, List, Set
import asyncio
import logging
logger = logging.getLogger(__name__)


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._pending: Set[asyncio.Task] = set()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners, awaiting coroutine listeners."""
        for callback in self._listeners.get(event_name, [])[:]:  # Copy list to avoid modification during iteration
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(*args, **kwargs)
                else:
                    callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}")

    def emit_nowait(self, event_name: str, *args, **kwargs):
        """
        Emit an event without blocking the caller.

        Must be called on the event loop thread. Plain listeners run inline;
        coroutine listeners run as tasks tracked until ``drain``.
        """
        for callback in self._listeners.get(event_name, [])[:]:
            if asyncio.iscoroutinefunction(callback):
                task = asyncio.get_running_loop().create_task(
                    self._call_async(event_name, callback, *args, **kwargs)
                )
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
                continue
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}")

    def emit_threadsafe(self, loop: asyncio.AbstractEventLoop, event_name: str, *args, **kwargs):
        """Schedule ``emit_nowait`` on ``loop``; safe to call from worker threads."""
        loop.call_soon_threadsafe(lambda: self.emit_nowait(event_name, *args, **kwargs))

    async def drain(self):
        """Wait for coroutine listeners started by ``emit_nowait``."""
        await asyncio.sleep(0)  # run callbacks already queued by emit_threadsafe
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _call_async(self, event_name: str, callback: Callable, *args, **kwargs):
        try:
            await callback(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in event listener for {event_name}: {e}")
