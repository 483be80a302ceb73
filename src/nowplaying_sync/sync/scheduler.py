"""
Frame Scheduler
===============

Per-visual-frame callback source for the sync loop.

The loop never waits: it asks for one callback, does its work when
called, and asks again. A handle lets the owner cancel a pending
callback.

Timestamps passed to callbacks are high-resolution milliseconds from a
monotonic clock (the event loop's own clock).
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol


logger = logging.getLogger(__name__)


FrameCallback = Callable[[float], None]


class FrameScheduler(Protocol):
    """Protocol for requestAnimationFrame-style schedulers."""
    
    def request_frame(self, callback: FrameCallback) -> Any:
        """Schedule one callback; return a cancellation handle."""
        ...
    
    def cancel_frame(self, handle: Any) -> None:
        ...


class AsyncioFrameScheduler:
    """
    Frame scheduler on an asyncio event loop.
    
    Fires each callback once, frame_interval_ms after it was requested.
    
    Example:
        scheduler = AsyncioFrameScheduler(frame_interval_ms=16.0)
        handle = scheduler.request_frame(lambda ts: print(ts))
        scheduler.cancel_frame(handle)
    """
    
    def __init__(
        self,
        frame_interval_ms: float = 16.0,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if frame_interval_ms <= 0:
            raise ValueError("frame_interval_ms must be > 0")
        
        self.frame_interval_ms = frame_interval_ms
        self._loop = loop
    
    def request_frame(self, callback: FrameCallback) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(
            self.frame_interval_ms / 1000.0,
            self._fire,
            loop,
            callback,
        )
    
    def cancel_frame(self, handle: Any) -> None:
        if handle is not None:
            handle.cancel()
    
    @staticmethod
    def _fire(loop: asyncio.AbstractEventLoop, callback: FrameCallback) -> None:
        callback(loop.time() * 1000.0)
